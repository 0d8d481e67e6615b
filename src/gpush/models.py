"""Pydantic models for gpush configuration and bookkeeping data."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

DEFAULT_REMOTE = "origin"
DEFAULT_GC_INTERVAL_DAYS = 7.0
STATE_DOCUMENT_VERSION = 1
_REQUIRED_DEFAULTS = {"default_remote": DEFAULT_REMOTE, "ssh_command": "ssh", "git_path": "git"}


class GcSettings(BaseModel):
    """GC settings resolved from git config.

    Attributes:
        remote: Explicitly configured review remote (``gpush.remote``).
        default_remote: Fallback remote when the choice is ambiguous.
        project: Gerrit project override (``gpush.project``).
        gc_interval_days: Days between ``--auto`` runs; ``0`` disables them.
        query_timeout_seconds: Seconds to wait for the Gerrit query; unset
            waits indefinitely.
        ssh_command: ssh executable used for Gerrit queries.
        git_path: git executable.

    Example:
        >>> GcSettings(remote="  ", gc_interval_days="2").remote is None
        True
    """

    model_config = ConfigDict(extra="ignore")

    remote: str | None = None
    default_remote: str = DEFAULT_REMOTE
    project: str | None = None
    gc_interval_days: float = Field(default=DEFAULT_GC_INTERVAL_DAYS, ge=0)
    query_timeout_seconds: float | None = Field(default=None, gt=0)
    ssh_command: str = "ssh"
    git_path: str = "git"

    @field_validator("remote", "project", "query_timeout_seconds", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            normalized = value.strip()
            return normalized or None
        return value

    @field_validator("default_remote", "ssh_command", "git_path", mode="before")
    @classmethod
    def normalize_required_strings(cls, value: object, info: ValidationInfo) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return _REQUIRED_DEFAULTS[info.field_name]
        if isinstance(value, str):
            return value.strip()
        return value


class ChangeRecord(BaseModel):
    """A locally initiated Change as recorded by the push workflow.

    Attributes:
        key: Locally assigned sequence key (the ``<seq>`` of ``i<seq>_*`` refs).
        change_id: Gerrit Change-Id of the Change.
    """

    model_config = ConfigDict(extra="allow")

    key: str
    change_id: str

    @field_validator("key", mode="before")
    @classmethod
    def normalize_key(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("change_id", mode="before")
    @classmethod
    def normalize_change_id(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value


class StateDocument(BaseModel):
    """On-disk push-workflow state, read by GC for Change records."""

    model_config = ConfigDict(extra="allow")

    version: int = STATE_DOCUMENT_VERSION
    changes: list[ChangeRecord] = Field(default_factory=list)


class ReviewRecord(BaseModel):
    """One record of a ``gerrit query --format JSON`` reply.

    ``number`` and ``id`` may be missing, in which case the record is
    skipped; ``branch`` and ``status`` are validated separately because
    their absence is fatal.
    """

    model_config = ConfigDict(extra="allow")

    number: str | None = None
    id: str | None = None
    branch: str | None = None
    status: str | None = None

    @field_validator("number", mode="before")
    @classmethod
    def normalize_number(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value
