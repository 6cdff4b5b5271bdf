"""Direct SSH/Docker host backend."""

from perennial.compute.direct_host.provider import (
    ContainerRef,
    ContainerStats,
    DirectHostProvider,
)
from perennial.compute.direct_host.ssh import SSHRunner

__all__ = ["ContainerRef", "ContainerStats", "DirectHostProvider", "SSHRunner"]
