"""Persistence of the deployment owned by each project.

The CLI is stateless between invocations, so the active deployment handle is
kept in ``<state_dir>/deployments.json`` keyed by project name.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from perennial.lib.errors import DeploymentError
from perennial.models.deployment import DeploymentConfig
from perennial.models.deployment_state import DeploymentRecord, DeploymentState

STATE_VERSION = "1.0"
STATE_FILE = "deployments.json"


def _state_error(message: str, exc: Exception) -> DeploymentError:
    return DeploymentError(operation="state", message=f"{message}: {exc}")


def get_state_path(state_dir: Path) -> Path:
    """Return the deployment state file inside a state directory."""
    return state_dir / STATE_FILE


def compute_config_hash(config: DeploymentConfig) -> str:
    """Hash the canonical JSON form of a workload request.

    Keys are sorted, so env var insertion order does not matter.
    """
    canonical = json.dumps(config.model_dump(mode="json"), sort_keys=True)
    return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_state(state_path: Path) -> DeploymentState:
    """Read the state file; a missing or empty file yields an empty state.

    Raises:
        DeploymentError: If the file is unreadable or malformed
    """
    if not state_path.is_file():
        return DeploymentState(version=STATE_VERSION)

    try:
        raw = state_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise _state_error(f"Cannot read {state_path}", exc) from exc

    if not raw.strip():
        return DeploymentState(version=STATE_VERSION)
    try:
        return DeploymentState.model_validate_json(raw)
    except ValidationError as exc:
        raise _state_error(f"Invalid deployment state format in {state_path}", exc) from exc


def save_state(state_path: Path, state: DeploymentState) -> None:
    """Write the state file, creating the state directory if needed."""
    document = json.dumps(state.model_dump(mode="json"), indent=2, sort_keys=True)
    try:
        state_path.parent.mkdir(parents=True, exist_ok=True)
        state_path.write_text(document, encoding="utf-8")
    except OSError as exc:
        raise _state_error(f"Cannot write {state_path}", exc) from exc


def get_deployment_record(state_path: Path, name: str) -> DeploymentRecord | None:
    return load_state(state_path).deployments.get(name)


def update_deployment_record(
    state_path: Path, name: str, record: DeploymentRecord
) -> DeploymentRecord:
    """Store a record under ``name`` and return it with timestamps filled in.

    ``created_at`` is kept from the record being replaced unless the new
    record sets one; ``updated_at`` is always the current time.
    """
    state = load_state(state_path)
    timestamp = datetime.now(timezone.utc)

    created_at = record.created_at
    if created_at is None:
        previous = state.deployments.get(name)
        created_at = previous.created_at if previous else timestamp

    stored = record.model_copy(
        update={"created_at": created_at or timestamp, "updated_at": timestamp}
    )
    state.deployments[name] = stored
    save_state(state_path, state)
    return stored


def remove_deployment_record(state_path: Path, name: str) -> bool:
    """Drop the record for ``name``; returns False when there was none."""
    state = load_state(state_path)
    if name not in state.deployments:
        return False
    del state.deployments[name]
    save_state(state_path, state)
    return True
