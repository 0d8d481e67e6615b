"""The GC pipeline: scan, resolve, query, decide, close, delete."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .. import config as gpush_config
from .. import gerrit, state
from ..git import GitConfig
from ..models import GcSettings
from .apply import apply_prune
from .closure import GitCommitSource, close_fetched_ancestry
from .common import log_debug
from .decide import decide_state_refs, fetched_seed_numbers, plan_state_refs, query_terms
from .models import GcError, GcResult, PruneBucket, PruneSet, UpstreamInfo
from .reachability import collect_local_change_ids
from .scan import scan_refs
from .upstream import resolve_upstreams


def _query_review_server(
    terms: Iterable[str],
    *,
    config: GitConfig,
    settings: GcSettings,
    upstream: UpstreamInfo,
    quiet: bool,
) -> gerrit.QueryResult:
    wanted = sorted(set(terms))
    if not wanted:
        log_debug("nothing to query")
        return gerrit.QueryResult()
    remote = gpush_config.resolve_review_remote(
        settings, config, set(upstream.remotes), quiet=quiet
    )
    url = gpush_config.remote_url(config, remote)
    if not url:
        raise GcError(f"remote '{remote}' has no URL configured")
    server = gerrit.ReviewServer.from_url(url, project=settings.project)
    log_debug(f"querying remote={remote} project={server.project} changes={len(wanted)}")
    return gerrit.query_changes(server, wanted, settings=settings)


def perform_gc(
    repo_root: Path,
    *,
    git_dir: Path,
    config: GitConfig,
    settings: GcSettings,
    dry_run: bool = False,
    quiet: bool = False,
) -> GcResult:
    """Prune tracking refs that nothing local or open on Gerrit needs.

    StateRefs survive when their Change is reachable from a local branch or
    still open on the server. FetchedRefs survive when their Change is live
    in that sense, or when a surviving fetched patchset is stacked on them.
    Unrecognized StateRefs are pruned; foreign refs are never touched.
    Nothing is written until every decision is made, and then only in one
    ref transaction (or not at all for ``dry_run``).

    Args:
        repo_root: Repository work tree.
        git_dir: Repository ``.git`` directory.
        config: Loaded git configuration.
        settings: Validated GC settings.
        dry_run: Report instead of deleting.
        quiet: Suppress notices.

    Returns:
        The decisions taken.

    Raises:
        GcError: On unusable bookkeeping or configuration.
        gerrit.GerritError: When the review server query fails.
    """
    git_path = settings.git_path
    scan = scan_refs(repo_root, git_path=git_path)
    upstream = resolve_upstreams(scan, config)
    local_change_ids = collect_local_change_ids(repo_root, scan, upstream, git_path=git_path)
    log_debug(f"local changes={len(local_change_ids)}")

    try:
        records = state.change_records_by_key(state.load_state(git_dir))
    except state.StateError as exc:
        raise GcError(str(exc)) from exc

    plan = plan_state_refs(scan.state_refs, records, local_change_ids)
    query = _query_review_server(
        query_terms(plan, scan.fetched_refs),
        config=config,
        settings=settings,
        upstream=upstream,
        quiet=quiet,
    )
    decision = decide_state_refs(plan, scan.state_refs, query, local_change_ids)

    seeds = fetched_seed_numbers(scan.fetched_refs, query, decision.live_change_ids)
    kept_fetched = close_fetched_ancestry(
        seeds,
        scan.fetched_refs,
        query.keys_by_id,
        GitCommitSource(repo_root, git_path=git_path),
    )

    prune_set = PruneSet()
    prune_set.add(PruneBucket.UNRECOGNIZED, list(plan.unrecognized))
    prune_set.add(PruneBucket.STATE, list(decision.prune))
    for number in sorted(scan.fetched_refs):
        if number not in kept_fetched:
            prune_set.add(PruneBucket.FETCHED, [ref.name for ref in scan.fetched_refs[number]])
    log_debug(
        f"kept state={len(decision.kept_keys)} fetched={len(kept_fetched)} "
        f"pruning={len(prune_set)}"
    )

    apply_prune(repo_root, prune_set.flatten(), dry_run=dry_run, git_path=git_path)
    return GcResult(
        prune_set=prune_set,
        kept_state_keys=decision.kept_keys,
        kept_fetched_numbers=frozenset(kept_fetched),
        dry_run=dry_run,
    )
