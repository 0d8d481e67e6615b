"""Ancestry closure over fetched patchsets.

A fetched patchset that is kept pins the patchsets it was stacked on: its
first-parent chain is followed for as long as each commit belongs to a
Change the server told us about, and every fetched change met on the way is
kept as well. Merge parents are ignored since a series is linear.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol

from .. import git
from ..git import CommitInfo
from .common import log_trace
from .models import FetchedRef, GcError


class CommitSource(Protocol):
    """Batched commit metadata lookup."""

    def commits(self, shas: Iterable[str]) -> Mapping[str, CommitInfo]: ...


class GitCommitSource:
    """``CommitSource`` reading from a repository, caching what it has seen."""

    def __init__(self, repo_root: Path, *, git_path: str | None = None) -> None:
        self._repo_root = repo_root
        self._git_path = git_path
        self._cache: dict[str, CommitInfo] = {}

    def commits(self, shas: Iterable[str]) -> Mapping[str, CommitInfo]:
        wanted = list(dict.fromkeys(shas))
        missing = [sha for sha in wanted if sha not in self._cache]
        if missing:
            self._cache.update(git.read_commits(self._repo_root, missing, git_path=self._git_path))
        return {sha: self._cache[sha] for sha in wanted if sha in self._cache}


def _require_change_id(ref: FetchedRef, info: CommitInfo | None) -> None:
    if info is None or info.change_id is None:
        raise GcError(f"fetched patchset {ref.name} ({ref.sha}) has no Change-Id")


def close_fetched_ancestry(
    seeds: Iterable[str],
    fetched_refs: Mapping[str, list[FetchedRef]],
    keys_by_id: Mapping[str, list[str]],
    source: CommitSource,
) -> set[str]:
    """Return the fetched change numbers to keep.

    Args:
        seeds: Change numbers already kept because their Change is live.
        fetched_refs: FetchedRefs grouped by change number.
        keys_by_id: Change-Id to change numbers, from the review query.
        source: Commit metadata lookup.

    Returns:
        ``seeds`` plus every fetched change reachable from them along
        first-parent chains of queried Changes.

    Raises:
        GcError: When a kept fetched patchset carries no Change-Id.
    """
    kept = {number for number in seeds if number in fetched_refs}
    pending: list[str] = []
    for number in sorted(kept):
        refs = fetched_refs[number]
        infos = source.commits(ref.sha for ref in refs)
        for ref in refs:
            _require_change_id(ref, infos.get(ref.sha))
            pending.append(ref.sha)

    visited: set[str] = set()
    while pending:
        frontier = [sha for sha in dict.fromkeys(pending) if sha not in visited]
        pending = []
        if not frontier:
            break
        visited.update(frontier)
        infos = source.commits(frontier)
        parents = [
            info.first_parent
            for info in (infos.get(sha) for sha in frontier)
            if info is not None and info.first_parent and info.first_parent not in visited
        ]
        if not parents:
            continue
        parent_infos = source.commits(parents)
        for parent in dict.fromkeys(parents):
            info = parent_infos.get(parent)
            change_id = info.change_id if info is not None else None
            numbers = [
                number for number in keys_by_id.get(change_id or "", ()) if number in fetched_refs
            ]
            if not numbers:
                log_trace(f"closure stops at {parent[:12]}")
                continue
            for number in numbers:
                if number in kept:
                    continue
                log_trace(f"closure keeps fetched change {number} via {parent[:12]}")
                kept.add(number)
                pending.extend(ref.sha for ref in fetched_refs[number])
            pending.append(parent)
    return kept
