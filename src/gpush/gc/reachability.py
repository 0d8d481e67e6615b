"""Change-Ids still reachable from local history."""

from __future__ import annotations

from pathlib import Path

from .. import git
from ..commit_messages import parse_change_id
from .common import log_trace
from .models import RefScan, UpstreamInfo


def local_start_points(
    repo_root: Path, scan: RefScan, *, git_path: str | None = None
) -> list[str]:
    """Return the checked-out commit plus every local branch tip."""
    starts: dict[str, None] = {}
    head = git.git_resolve_commit(repo_root, "HEAD", git_path=git_path)
    if head:
        starts[head] = None
    for branch in sorted(scan.heads):
        starts[scan.heads[branch]] = None
    return list(starts)


def collect_local_change_ids(
    repo_root: Path,
    scan: RefScan,
    upstream: UpstreamInfo,
    *,
    git_path: str | None = None,
) -> set[str]:
    """Walk local history not yet upstream and collect Change-Id trailers."""
    starts = local_start_points(repo_root, scan, git_path=git_path)
    change_ids: set[str] = set()
    if not starts:
        return change_ids
    for sha, message in git.iter_commit_messages(
        repo_root, starts, upstream.exclude_refs, git_path=git_path
    ):
        change_id = parse_change_id(message)
        if change_id is None:
            continue
        log_trace(f"local commit {sha[:12]} change={change_id}")
        change_ids.add(change_id)
    return change_ids
