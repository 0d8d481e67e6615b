"""Batch deletion of pruned refs."""

from __future__ import annotations

from pathlib import Path

from .. import git
from .. import log as gpush_log
from .common import short_ref


def apply_prune(
    repo_root: Path,
    refs: list[str],
    *,
    dry_run: bool,
    git_path: str | None = None,
) -> None:
    """Delete ``refs`` in a single ref transaction, or only report them.

    Deletion goes straight to the ref store; the push workflow's state
    document is left alone.
    """
    verb = "Would prune" if dry_run else "Pruning"
    for ref in refs:
        gpush_log.debug(f"{verb} {short_ref(ref)}")
    if dry_run or not refs:
        return
    git.delete_refs(repo_root, refs, git_path=git_path)
