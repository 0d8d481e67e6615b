"""Shared helpers for GC operations."""

from __future__ import annotations

from .. import log as gpush_log


def log_trace(message: str) -> None:
    gpush_log.trace(f"[gc] {message}")


def log_debug(message: str) -> None:
    gpush_log.debug(f"[gc] {message}")


def short_ref(name: str) -> str:
    """Strip the ``refs/`` prefix for display.

    Example:
        >>> short_ref("refs/gpush/i12_pushed")
        'gpush/i12_pushed'
    """
    if name.startswith("refs/"):
        return name[len("refs/") :]
    return name
