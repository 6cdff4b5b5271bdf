"""Persisted deployment state."""
