"""Upstream resolution for local branches."""

from __future__ import annotations

from .. import git
from ..git import GitConfig
from .common import log_trace
from .models import RefScan, UpstreamInfo


def upstream_tracking_ref(config: GitConfig, branch: str) -> tuple[str, str] | None:
    """Return ``(remote, tracking_ref)`` for a branch's configured upstream.

    Branches without ``branch.<name>.remote``/``merge``, or tracking another
    local branch (remote ``.``), have no remote-tracking upstream.

    Example:
        >>> config = GitConfig({
        ...     "branch.topic.remote": ["origin"],
        ...     "branch.topic.merge": ["refs/heads/dev"],
        ... })
        >>> upstream_tracking_ref(config, "topic")
        ('origin', 'refs/remotes/origin/dev')
    """
    remote = config.get(f"branch.{branch}.remote")
    merge = config.get(f"branch.{branch}.merge")
    if not remote or not merge or remote == ".":
        return None
    if merge.startswith(git.HEADS_PREFIX):
        merge = merge[len(git.HEADS_PREFIX) :]
    return remote, f"{git.REMOTES_PREFIX}{remote}/{merge}"


def resolve_upstreams(scan: RefScan, config: GitConfig) -> UpstreamInfo:
    """Collect existing upstream tracking refs and the remotes they belong to.

    Upstreams whose remote-tracking ref no longer exists are skipped.
    """
    exclude: dict[str, None] = {}
    remotes: set[str] = set()
    for branch in sorted(scan.heads):
        upstream = upstream_tracking_ref(config, branch)
        if upstream is None:
            continue
        remote, ref = upstream
        if ref not in scan.remote_refs:
            log_trace(f"upstream missing branch={branch} ref={ref}")
            continue
        exclude[ref] = None
        remotes.add(remote)
    return UpstreamInfo(exclude_refs=tuple(exclude), remotes=frozenset(remotes))
