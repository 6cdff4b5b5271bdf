"""Unit tests for the direct-host (Docker over SSH) provider."""

from __future__ import annotations

import asyncio
import math
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from perennial.compute.direct_host.commands import (
    build_deploy_command,
    build_destroy_command,
    build_inspect_command,
    build_logs_command,
    build_run_command,
    docker_memory_flag,
    is_missing_container,
)
from perennial.compute.direct_host.provider import (
    ContainerRef,
    DirectHostProvider,
    new_container_name,
    parse_stats,
)
from perennial.compute.direct_host.ssh import SSHRunner
from perennial.lib.errors import DeploymentError, RemoteCommandError
from perennial.models.config import DirectHostProviderConfig
from perennial.models.deployment import Deployment, DeploymentConfig, DeploymentStatus


@pytest.fixture
def host_config() -> DirectHostProviderConfig:
    return DirectHostProviderConfig(host="vps.example.com", username="deploy")


@pytest.fixture
def runner() -> MagicMock:
    mock = MagicMock(spec=SSHRunner)
    mock.run = AsyncMock(return_value="")
    return mock


@pytest.fixture
def container(workload: DeploymentConfig) -> Deployment:
    ref = ContainerRef(container_name="perennial-abc", host="vps.example.com")
    return Deployment(
        id="perennial-abc",
        provider="vps",
        status=DeploymentStatus.RUNNING,
        config=workload,
        metadata=ref.to_metadata(),
    )


@pytest.mark.unit
class TestDockerCommands:
    """Tests for docker command construction."""

    @pytest.mark.parametrize(
        ("quantity", "expected"),
        [("512Mi", "512m"), ("2Gi", "2g"), ("128Ki", "128k"), ("1Ti", "1t")],
    )
    def test_memory_flag(self, quantity: str, expected: str) -> None:
        assert docker_memory_flag(quantity) == expected

    def test_run_command(self, workload: DeploymentConfig) -> None:
        command = build_run_command(workload, "perennial-abc", "perennial-data")

        assert command == (
            "docker run -d --name perennial-abc --memory=512m --cpus=0.5 "
            "-e LOG_LEVEL=info -e RELAY_URL=wss://relay.example "
            "-p 8080:8080 -v perennial-data:/data "
            "--restart unless-stopped ghcr.io/example/agent:1.2.0"
        )

    def test_values_are_shell_quoted(self) -> None:
        config = DeploymentConfig(image="nginx", env={"GREETING": "hello world; rm -rf /"})

        command = build_run_command(config, "c", "v")

        assert "-e 'GREETING=hello world; rm -rf /'" in command

    def test_no_volume_without_persistent_storage(self) -> None:
        command = build_run_command(DeploymentConfig(image="nginx"), "c", "v")

        assert " -v " not in command
        assert " -p " not in command

    def test_deploy_pulls_first(self, workload: DeploymentConfig) -> None:
        command = build_deploy_command(workload, "c", "v")

        assert command.startswith("docker pull ghcr.io/example/agent:1.2.0 && docker run")

    def test_other_commands(self) -> None:
        assert build_inspect_command("c") == "docker inspect --format '{{.State.Status}}' c"
        assert build_destroy_command("c") == "docker stop c && docker rm c"
        assert build_logs_command("c", 50) == "docker logs --tail 50 c 2>&1"

    def test_missing_container_detection(self) -> None:
        assert is_missing_container("Error: No such container: c")
        assert not is_missing_container("permission denied")


@pytest.mark.unit
class TestSSHRunner:
    """Tests for ssh invocation."""

    def test_default_argv(self) -> None:
        runner = SSHRunner(host="h.example", username="deploy")

        assert runner.build_argv("uptime") == [
            "ssh",
            "-o", "ConnectTimeout=10",
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", "BatchMode=yes",
            "deploy@h.example",
            "uptime",
        ]  # fmt: skip

    def test_port_and_key(self, host_config: DirectHostProviderConfig) -> None:
        config = host_config.model_copy(
            update={"port": 2222, "private_key_path": "/keys/id_ed25519"}
        )

        argv = SSHRunner.from_config(config).build_argv("uptime")

        assert argv[argv.index("-p") + 1] == "2222"
        assert argv[argv.index("-i") + 1] == "/keys/id_ed25519"

    @pytest.mark.asyncio
    async def test_run_returns_stdout(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"running\n", b""))
        proc.returncode = 0

        with patch(
            "perennial.compute.direct_host.ssh.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=proc),
        ) as exec_mock:
            output = await SSHRunner(host="h").run("docker ps")

        assert output == "running\n"
        assert exec_mock.call_args.args[0] == "ssh"
        assert exec_mock.call_args.args[-1] == "docker ps"

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"", b"Error: No such container: c"))
        proc.returncode = 1

        with patch(
            "perennial.compute.direct_host.ssh.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=proc),
        ):
            with pytest.raises(RemoteCommandError) as exc_info:
                await SSHRunner(host="h").run("docker rm c", operation="destroy")

        assert exc_info.value.exit_code == 1
        assert exc_info.value.operation == "destroy"
        assert "No such container" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(side_effect=asyncio.TimeoutError)
        proc.wait = AsyncMock(return_value=-9)

        with patch(
            "perennial.compute.direct_host.ssh.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=proc),
        ):
            with pytest.raises(RemoteCommandError, match="timed out") as exc_info:
                await SSHRunner(host="h").run("sleep 999", timeout=1)

        proc.kill.assert_called_once()
        assert exc_info.value.exit_code is None


@pytest.mark.unit
class TestDirectHostProvider:
    """Tests for DirectHostProvider operations."""

    def test_container_names_are_unique(self) -> None:
        first, second = new_container_name(), new_container_name()

        assert first.startswith("perennial-")
        assert first != second

    @pytest.mark.asyncio
    async def test_deploy(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        workload: DeploymentConfig,
    ) -> None:
        provider = DirectHostProvider(host_config, name="vps", runner=runner)

        deployment = await provider.deploy(workload)

        assert deployment.status == DeploymentStatus.RUNNING
        assert deployment.provider == "vps"
        assert deployment.metadata == {
            "container_name": deployment.id,
            "host": "vps.example.com",
        }
        command = runner.run.call_args.args[0]
        assert f"--name {deployment.id}" in command
        assert runner.run.call_args.kwargs["operation"] == "deploy"

    @pytest.mark.asyncio
    async def test_deploy_failure_propagates(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        workload: DeploymentConfig,
    ) -> None:
        runner.run.side_effect = RemoteCommandError("docker pull", 1, "denied")
        provider = DirectHostProvider(host_config, runner=runner)

        with pytest.raises(RemoteCommandError):
            await provider.deploy(workload)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("output", "expected"),
        [
            ("running\n", DeploymentStatus.RUNNING),
            ("'exited'", DeploymentStatus.STOPPED),
            ("restarting", DeploymentStatus.DEPLOYING),
            ("paused", DeploymentStatus.UNKNOWN),
        ],
    )
    async def test_status_mapping(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        container: Deployment,
        output: str,
        expected: DeploymentStatus,
    ) -> None:
        runner.run.return_value = output
        provider = DirectHostProvider(host_config, runner=runner)

        assert await provider.status(container) == expected

    @pytest.mark.asyncio
    async def test_health_check_unreachable_host(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        container: Deployment,
    ) -> None:
        runner.run.side_effect = RemoteCommandError("docker inspect", 255, "timeout")
        provider = DirectHostProvider(host_config, runner=runner)

        result = await provider.health_check(container)

        assert result.healthy is False
        assert result.message == "Container status: unknown"

    @pytest.mark.asyncio
    async def test_destroy_ignores_missing_container(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        container: Deployment,
    ) -> None:
        runner.run.side_effect = RemoteCommandError(
            "docker stop", 1, "Error response from daemon: No such container: x"
        )
        provider = DirectHostProvider(host_config, runner=runner)

        await provider.destroy(container)

    @pytest.mark.asyncio
    async def test_destroy_other_failure_raises(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        container: Deployment,
    ) -> None:
        runner.run.side_effect = RemoteCommandError("docker stop", 1, "permission denied")
        provider = DirectHostProvider(host_config, runner=runner)

        with pytest.raises(RemoteCommandError):
            await provider.destroy(container)

    @pytest.mark.asyncio
    async def test_balance_and_funding(
        self, host_config: DirectHostProviderConfig, runner: MagicMock
    ) -> None:
        provider = DirectHostProvider(host_config, runner=runner)

        balance = await provider.get_balance()
        result = await provider.fund(10)

        assert math.isinf(balance.amount)
        assert balance.denom == "N/A"
        assert result.success is True
        assert result.message == "Direct host provider does not require funding."

    @pytest.mark.asyncio
    async def test_logs(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        container: Deployment,
    ) -> None:
        runner.run.return_value = "line one\nline two\n"
        provider = DirectHostProvider(host_config, runner=runner)

        assert await provider.get_logs(container, lines=2) == ["line one", "line two"]

        runner.run.side_effect = RemoteCommandError("docker logs", 1, "boom")
        with pytest.raises(DeploymentError) as exc_info:
            await provider.get_logs(container)
        assert exc_info.value.operation == "logs"

    @pytest.mark.asyncio
    async def test_container_stats(
        self,
        host_config: DirectHostProviderConfig,
        runner: MagicMock,
        container: Deployment,
    ) -> None:
        runner.run.return_value = "1.50%|120MiB / 512MiB|23.44%\n"
        provider = DirectHostProvider(host_config, runner=runner)

        stats = await provider.container_stats(container)

        assert stats is not None
        assert stats.cpu_percent == 1.5
        assert stats.memory_usage == "120MiB"
        assert stats.memory_limit == "512MiB"
        assert stats.memory_percent == 23.44

    def test_parse_stats_malformed(self) -> None:
        assert parse_stats("") is None
        assert parse_stats("n/a|x|y") is None
