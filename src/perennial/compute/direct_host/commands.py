"""Docker command builders for the direct-host backend.

Every interpolated value is quoted with ``shlex.quote`` because the commands
are executed by the remote login shell.
"""

from __future__ import annotations

import shlex

from perennial.models.deployment import DeploymentConfig

RESTART_POLICY = "unless-stopped"
STATUS_FORMAT = "{{.State.Status}}"
STATS_FORMAT = "{{.CPUPerc}}|{{.MemUsage}}|{{.MemPerc}}"

# Substrings docker prints when a container does not exist
MISSING_CONTAINER_MARKERS = ("No such container", "No such object")

_DOCKER_UNITS = {"Ki": "k", "Mi": "m", "Gi": "g", "Ti": "t"}


def docker_memory_flag(quantity: str) -> str:
    """Translate a quantity such as ``512Mi`` into docker notation (``512m``)."""
    for suffix, unit in _DOCKER_UNITS.items():
        if quantity.endswith(suffix):
            return f"{quantity[: -len(suffix)]}{unit}"
    return quantity


def build_pull_command(image: str) -> str:
    return f"docker pull {shlex.quote(image)}"


def build_run_command(
    config: DeploymentConfig, container_name: str, volume_name: str
) -> str:
    """Build the ``docker run`` command for a workload.

    Args:
        config: Workload description
        container_name: Unique container name
        volume_name: Named volume backing persistent storage

    Returns:
        Shell command string
    """
    parts = [
        "docker run -d",
        f"--name {shlex.quote(container_name)}",
        f"--memory={docker_memory_flag(config.memory)}",
        f"--cpus={config.cpu:g}",
    ]
    for key in sorted(config.env):
        parts.append(f"-e {shlex.quote(f'{key}={config.env[key]}')}")
    for port in config.ports:
        parts.append(f"-p {port}:{port}")
    if config.persistent_storage is not None:
        mount = f"{volume_name}:{config.persistent_storage.mount_path}"
        parts.append(f"-v {shlex.quote(mount)}")
    parts.append(f"--restart {RESTART_POLICY}")
    parts.append(shlex.quote(config.image))
    return " ".join(parts)


def build_deploy_command(
    config: DeploymentConfig, container_name: str, volume_name: str
) -> str:
    """Pull the image, then start the container."""
    return (
        f"{build_pull_command(config.image)} && "
        f"{build_run_command(config, container_name, volume_name)}"
    )


def build_inspect_command(container_name: str) -> str:
    return (
        f"docker inspect --format {shlex.quote(STATUS_FORMAT)} "
        f"{shlex.quote(container_name)}"
    )


def build_destroy_command(container_name: str) -> str:
    name = shlex.quote(container_name)
    return f"docker stop {name} && docker rm {name}"


def build_logs_command(container_name: str, lines: int) -> str:
    return f"docker logs --tail {int(lines)} {shlex.quote(container_name)} 2>&1"


def build_stats_command(container_name: str) -> str:
    return (
        f"docker stats --no-stream --format {shlex.quote(STATS_FORMAT)} "
        f"{shlex.quote(container_name)}"
    )


def is_missing_container(output: str) -> bool:
    """Whether docker output reports an absent container."""
    return any(marker in output for marker in MISSING_CONTAINER_MARKERS)
