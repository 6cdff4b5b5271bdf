"""Perennial - keep a containerized workload alive on unreliable compute.

Perennial deploys a long-running container to an auction-based compute
marketplace, fails over to alternate backends when providers disappear, and
runs a scheduled heartbeat that detects unhealthy deployments and heals them.

Main features:
- Marketplace backend: order, bid selection, lease, manifest push
- Direct-host backend: Docker over SSH on an operator-controlled server
- Priority-ordered provider failover
- Heartbeat scheduler with health, funding and connectivity monitors
- Rate-limited operator notifications
"""

from perennial.config.loader import ConfigLoader
from perennial.lib.errors import ConfigError, DeploymentError, PerennialError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigLoader",
    "ConfigError",
    "DeploymentError",
    "PerennialError",
]
