"""Marketplace manifest rendering.

Produces the declarative YAML manifest (services, compute profile, placement
pricing, deployment) for a DeploymentConfig, and the content hash used as the
deployment version on chain.
"""

from __future__ import annotations

import hashlib
from typing import Any

import yaml

from perennial.models.deployment import DeploymentConfig

MANIFEST_VERSION = "2.0"
SERVICE_NAME = "agent"
PLACEMENT_NAME = "dcloud"
PERSISTENT_VOLUME_NAME = "data"
PERSISTENT_STORAGE_CLASS = "beta3"


def _format_cpu(cpu: float) -> int | float:
    return int(cpu) if float(cpu).is_integer() else cpu


def build_manifest(
    config: DeploymentConfig,
    *,
    pricing_amount: int,
    denom: str = "uakt",
) -> dict[str, Any]:
    """Build the manifest document as a plain dictionary.

    Environment variables are emitted in key order so that the same config
    always yields the same document.

    Args:
        config: Workload description
        pricing_amount: Maximum price per block in smallest units
        denom: Smallest-unit denomination

    Returns:
        Manifest mapping ready for YAML serialization
    """
    service: dict[str, Any] = {"image": config.image}
    if config.env:
        service["env"] = [f"{key}={config.env[key]}" for key in sorted(config.env)]
    service["expose"] = [
        {"port": port, "as": port, "to": [{"global": True}]} for port in config.ports
    ]

    storage: list[dict[str, Any]] = [{"size": config.storage}]
    if config.persistent_storage is not None:
        service["params"] = {
            "storage": {
                PERSISTENT_VOLUME_NAME: {
                    "mount": config.persistent_storage.mount_path,
                    "readOnly": False,
                }
            }
        }
        storage.append(
            {
                "name": PERSISTENT_VOLUME_NAME,
                "size": config.persistent_storage.size,
                "attributes": {
                    "persistent": True,
                    "class": PERSISTENT_STORAGE_CLASS,
                },
            }
        )

    return {
        "version": MANIFEST_VERSION,
        "services": {SERVICE_NAME: service},
        "profiles": {
            "compute": {
                SERVICE_NAME: {
                    "resources": {
                        "cpu": {"units": _format_cpu(config.cpu)},
                        "memory": {"size": config.memory},
                        "storage": storage,
                    }
                }
            },
            "placement": {
                PLACEMENT_NAME: {
                    "pricing": {
                        SERVICE_NAME: {"denom": denom, "amount": pricing_amount}
                    }
                }
            },
        },
        "deployment": {
            SERVICE_NAME: {PLACEMENT_NAME: {"profile": SERVICE_NAME, "count": 1}}
        },
    }


def render_manifest(
    config: DeploymentConfig,
    *,
    pricing_amount: int = 10_000,
    denom: str = "uakt",
) -> str:
    """Render the manifest YAML for a DeploymentConfig."""
    document = build_manifest(config, pricing_amount=pricing_amount, denom=denom)
    body = yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
    return f"---\n{body}"


def manifest_version(manifest: str) -> str:
    """Return the SHA-256 hex digest identifying a rendered manifest."""
    return hashlib.sha256(manifest.encode("utf-8")).hexdigest()
