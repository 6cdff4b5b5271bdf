"""Pluggable compute backends and the multi-provider manager."""

from perennial.compute.base import ComputeProvider
from perennial.compute.factory import create_manager, create_provider
from perennial.compute.manager import FailoverEvent, ProviderManager

__all__ = [
    "ComputeProvider",
    "FailoverEvent",
    "ProviderManager",
    "create_manager",
    "create_provider",
]
