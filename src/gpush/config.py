"""Configuration helpers for gpush.

Settings live in git config under the ``gpush`` section and are validated
with Pydantic models.

Example:
    >>> from gpush.git import GitConfig
    >>> settings = load_settings(GitConfig({"gpush.gcinterval": ["3"]}))
    >>> settings.gc_interval_days
    3.0
"""

from __future__ import annotations

from pydantic import ValidationError

from . import log as gpush_log
from .git import GitConfig
from .models import GcSettings

CONVENTIONAL_REVIEW_REMOTE = "gerrit"

_SETTINGS_KEYS = {
    "remote": "gpush.remote",
    "default_remote": "gpush.defaultRemote",
    "project": "gpush.project",
    "gc_interval_days": "gpush.gcInterval",
    "query_timeout_seconds": "gpush.queryTimeout",
    "ssh_command": "gpush.sshCommand",
}


class ConfigError(RuntimeError):
    """Raised when git configuration cannot be used."""


def load_settings(config: GitConfig, *, git_path: str | None = None) -> GcSettings:
    """Build validated GC settings from a git config snapshot.

    Args:
        config: Loaded git configuration.
        git_path: git executable in use, recorded on the settings.

    Returns:
        Validated settings.

    Raises:
        ConfigError: When a configured value is invalid.
    """
    payload: dict[str, object] = {}
    for field, key in _SETTINGS_KEYS.items():
        value = config.get(key)
        if value is not None:
            payload[field] = value
    if git_path:
        payload["git_path"] = git_path
    try:
        return GcSettings.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(
            _SETTINGS_KEYS.get(str(error["loc"][0]), str(error["loc"][0])) for error in exc.errors()
        )
        raise ConfigError(f"invalid gpush configuration: {fields}") from exc


def resolve_review_remote(
    settings: GcSettings,
    config: GitConfig,
    upstream_remotes: set[str],
    *,
    quiet: bool = False,
) -> str:
    """Pick the remote that talks to the review server.

    Order: explicit ``gpush.remote``; a remote named ``gerrit``; the only
    remote local branches track; otherwise ``gpush.defaultRemote``.

    Args:
        settings: Validated GC settings.
        config: Loaded git configuration (for the list of remotes).
        upstream_remotes: Remotes used as upstreams by local branches.
        quiet: Suppress the ambiguity notice.

    Returns:
        Remote name.
    """
    if settings.remote:
        return settings.remote
    if CONVENTIONAL_REVIEW_REMOTE in config.remotes():
        return CONVENTIONAL_REVIEW_REMOTE
    if len(upstream_remotes) == 1:
        return next(iter(upstream_remotes))
    if len(upstream_remotes) > 1 and not quiet:
        candidates = ", ".join(sorted(upstream_remotes))
        gpush_log.warning(
            f"Notice: multiple upstream remotes ({candidates}) found; "
            f"using '{settings.default_remote}'. Set gpush.remote to choose one."
        )
    return settings.default_remote


def remote_url(config: GitConfig, remote: str) -> str | None:
    """Return the push URL of ``remote``, falling back to its fetch URL."""
    return config.get(f"remote.{remote}.pushurl") or config.get(f"remote.{remote}.url")
