"""Scheduled monitors."""

from perennial.heartbeat.monitors.connectivity import ConnectivityMonitor
from perennial.heartbeat.monitors.external_balance import ExternalBalanceMonitor
from perennial.heartbeat.monitors.funding import FundingMonitor
from perennial.heartbeat.monitors.health import HealthMonitor

__all__ = [
    "ConnectivityMonitor",
    "ExternalBalanceMonitor",
    "FundingMonitor",
    "HealthMonitor",
]
