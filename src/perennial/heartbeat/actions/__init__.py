"""Actions triggered by heartbeat monitors."""

from perennial.heartbeat.actions.notify import LogChannel, Notifier, WebhookChannel
from perennial.heartbeat.actions.self_heal import SelfHealer, SelfHealState
from perennial.heartbeat.actions.summarize import Summarizer

__all__ = [
    "LogChannel",
    "Notifier",
    "SelfHealState",
    "SelfHealer",
    "Summarizer",
    "WebhookChannel",
]
