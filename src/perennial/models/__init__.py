"""Pydantic models for Perennial deployments and configuration."""
