"""Ref scanning: local branches, remote-tracking refs, and tracking refs."""

from __future__ import annotations

import re
from pathlib import Path

from .. import git
from .common import log_trace
from .models import FetchedRef, ForeignRef, RefScan, StateRef, TrackingRef

_STATE_REF_PATTERN = re.compile(r"^i(?P<key>\d+)_")
_FETCHED_REF_PATTERN = re.compile(r"^g(?P<number>\d+)_")


def classify_tracking_ref(name: str, sha: str) -> TrackingRef:
    """Classify a ref under ``refs/gpush/`` by its name.

    Example:
        >>> classify_tracking_ref("refs/gpush/i7_pushed", "abc")
        StateRef(name='refs/gpush/i7_pushed', key='7')
        >>> classify_tracking_ref("refs/gpush/g1234_2", "abc").number
        '1234'
        >>> classify_tracking_ref("refs/gpush/state", "abc")
        ForeignRef(name='refs/gpush/state')
    """
    leaf = name[len(git.GPUSH_PREFIX) :] if name.startswith(git.GPUSH_PREFIX) else name
    match = _STATE_REF_PATTERN.match(leaf)
    if match:
        return StateRef(name=name, key=match.group("key"))
    match = _FETCHED_REF_PATTERN.match(leaf)
    if match:
        return FetchedRef(name=name, number=match.group("number"), sha=sha)
    return ForeignRef(name=name)


def add_ref(scan: RefScan, sha: str, name: str) -> None:
    """Record one ``(sha, name)`` pair in the scan."""
    if name.startswith(git.HEADS_PREFIX):
        scan.heads[name[len(git.HEADS_PREFIX) :]] = sha
    elif name.startswith(git.REMOTES_PREFIX):
        scan.remote_refs.add(name)
    elif name.startswith(git.GPUSH_PREFIX):
        ref = classify_tracking_ref(name, sha)
        if isinstance(ref, StateRef):
            scan.state_refs.setdefault(ref.key, []).append(ref)
        elif isinstance(ref, FetchedRef):
            scan.fetched_refs.setdefault(ref.number, []).append(ref)
        else:
            scan.foreign_refs.append(ref)


def scan_refs(repo_root: Path, *, git_path: str | None = None) -> RefScan:
    """Enumerate local, remote-tracking, and tracking refs in one pass."""
    scan = RefScan()
    for sha, name in git.iter_refs(
        repo_root,
        [git.HEADS_PREFIX, git.REMOTES_PREFIX, git.GPUSH_PREFIX],
        git_path=git_path,
    ):
        add_ref(scan, sha, name)
    log_trace(
        f"scan heads={len(scan.heads)} remotes={len(scan.remote_refs)} "
        f"state={sum(len(refs) for refs in scan.state_refs.values())} "
        f"fetched={sum(len(refs) for refs in scan.fetched_refs.values())} "
        f"foreign={len(scan.foreign_refs)}"
    )
    return scan
