"""Last-run bookkeeping for automatic GC."""

from __future__ import annotations

import datetime as dt
from pathlib import Path

from ..state import state_dir

LAST_GC_FILENAME = "last-gc"


def last_gc_path(git_dir: Path) -> Path:
    return state_dir(git_dir) / LAST_GC_FILENAME


def parse_rfc3339(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw.replace("Z", "+00:00")
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def format_rfc3339(value: dt.datetime) -> str:
    """Format a timestamp as UTC RFC 3339 with a ``Z`` suffix.

    Example:
        >>> format_rfc3339(dt.datetime(2026, 1, 2, 3, 4, 5, 600, tzinfo=dt.timezone.utc))
        '2026-01-02T03:04:05Z'
    """
    normalized = value.astimezone(dt.timezone.utc).replace(microsecond=0)
    return normalized.isoformat().replace("+00:00", "Z")


def read_last_gc(git_dir: Path) -> dt.datetime | None:
    path = last_gc_path(git_dir)
    try:
        return parse_rfc3339(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None


def record_gc_run(git_dir: Path, now: dt.datetime | None = None) -> None:
    path = last_gc_path(git_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    stamp = format_rfc3339(now or dt.datetime.now(tz=dt.timezone.utc))
    path.write_text(f"{stamp}\n", encoding="utf-8")


def is_gc_due(
    last_run: dt.datetime | None, interval_days: float, now: dt.datetime | None = None
) -> bool:
    """Return whether an automatic run is due.

    An interval of zero disables automatic runs; a missing or unreadable
    marker makes a run due.
    """
    if interval_days <= 0:
        return False
    if last_run is None:
        return True
    current = now or dt.datetime.now(tz=dt.timezone.utc)
    return current - last_run >= dt.timedelta(days=interval_days)
