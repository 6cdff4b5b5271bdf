"""Memory storage implementations."""

from perennial.storage.local import LocalStorage

__all__ = ["LocalStorage"]
