"""Garbage collection of stale gpush tracking refs."""

from __future__ import annotations

from .engine import perform_gc
from .models import GcError, GcResult, PruneBucket, PruneSet

__all__ = ["GcError", "GcResult", "PruneBucket", "PruneSet", "perform_gc"]
