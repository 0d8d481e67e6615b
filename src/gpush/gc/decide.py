"""Survival decisions for tracking refs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from ..gerrit import QueryResult
from ..models import ChangeRecord
from .common import log_debug, log_trace, short_ref
from .models import FetchedRef, StateDecision, StateRef


@dataclass(frozen=True)
class StatePlan:
    """StateRef triage before the review server is asked.

    Attributes:
        kept_keys: Keys whose Change is reachable from a local branch.
        pending: Key to Change-Id for Changes that need a remote verdict.
        unrecognized: StateRef names without a Change record.
    """

    kept_keys: frozenset[str]
    pending: Mapping[str, str]
    unrecognized: tuple[str, ...]


def plan_state_refs(
    state_refs: Mapping[str, list[StateRef]],
    records: Mapping[str, ChangeRecord],
    local_change_ids: set[str],
) -> StatePlan:
    """Split StateRefs into locally alive, needing a query, and unrecognized.

    A Change reachable from local history is kept no matter what the server
    would say about it.
    """
    kept: set[str] = set()
    pending: dict[str, str] = {}
    unrecognized: list[str] = []
    for key in sorted(state_refs):
        record = records.get(key)
        if record is None or not record.change_id:
            for ref in state_refs[key]:
                log_debug(f"unrecognized change {key}: {short_ref(ref.name)}")
                unrecognized.append(ref.name)
            continue
        if record.change_id in local_change_ids:
            log_trace(f"change {key} ({record.change_id}) is local")
            kept.add(key)
            continue
        pending[key] = record.change_id
    return StatePlan(
        kept_keys=frozenset(kept), pending=dict(pending), unrecognized=tuple(unrecognized)
    )


def query_terms(plan: StatePlan, fetched_refs: Mapping[str, list[FetchedRef]]) -> set[str]:
    """Change-Ids of pending StateRefs plus the numbers of all fetched changes."""
    return {*plan.pending.values(), *fetched_refs}


def decide_state_refs(
    plan: StatePlan,
    state_refs: Mapping[str, list[StateRef]],
    query: QueryResult,
    local_change_ids: set[str],
) -> StateDecision:
    """Resolve pending StateRefs against the review server's answer.

    Changes open on any branch survive and count as live for the fetched
    patchset closure. Changes the server did not return are pruned just
    like merged or abandoned ones.
    """
    kept = set(plan.kept_keys)
    live = set(local_change_ids)
    prune: list[str] = []
    for key in sorted(plan.pending):
        change_id = plan.pending[key]
        if query.is_active(change_id):
            log_trace(f"change {key} ({change_id}) is active")
            kept.add(key)
            live.add(change_id)
            continue
        reason = "inactive" if change_id in query.keys_by_id else "unknown to Gerrit"
        for ref in state_refs[key]:
            log_debug(f"change {key} ({change_id}) {reason}: {short_ref(ref.name)}")
            prune.append(ref.name)
    return StateDecision(
        kept_keys=frozenset(kept), prune=tuple(prune), live_change_ids=frozenset(live)
    )


def fetched_seed_numbers(
    fetched_refs: Mapping[str, list[FetchedRef]],
    query: QueryResult,
    live_change_ids: frozenset[str] | set[str],
) -> set[str]:
    """Fetched change numbers whose Change is live locally."""
    seeds: set[str] = set()
    for number in sorted(fetched_refs):
        change_id = query.ids_by_key.get(number)
        if change_id is None:
            log_debug(f"fetched change {number} unknown to Gerrit")
            continue
        if change_id in live_change_ids:
            log_trace(f"fetched change {number} ({change_id}) is live")
            seeds.add(number)
    return seeds
