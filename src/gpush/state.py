"""Read access to the push workflow's per-Change records."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from .models import ChangeRecord, StateDocument

STATE_DIRNAME = "gpush"
STATE_FILENAME = "state.json"


class StateError(RuntimeError):
    """Raised when the state document exists but cannot be read."""


def state_dir(git_dir: Path) -> Path:
    return git_dir / STATE_DIRNAME


def state_path(git_dir: Path) -> Path:
    return state_dir(git_dir) / STATE_FILENAME


def load_state(git_dir: Path) -> StateDocument:
    """Load the state document, returning an empty one when absent.

    Raises:
        StateError: When the file is not valid JSON or fails validation.
    """
    path = state_path(git_dir)
    if not path.exists():
        return StateDocument()
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        return StateDocument.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise StateError(f"failed to read {path}: {exc}") from exc


def change_records_by_key(document: StateDocument) -> dict[str, ChangeRecord]:
    """Index Change records by sequence key; later entries win."""
    return {record.key: record for record in document.changes}
