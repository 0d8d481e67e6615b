"""GC data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class GcError(RuntimeError):
    """Raised when GC must stop before touching any ref."""


@dataclass(frozen=True)
class StateRef:
    """Tracking ref for a locally initiated Change (``refs/gpush/i<seq>_*``)."""

    name: str
    key: str


@dataclass(frozen=True)
class FetchedRef:
    """Tracking ref for a patchset fetched from Gerrit (``refs/gpush/g<number>_*``)."""

    name: str
    number: str
    sha: str


@dataclass(frozen=True)
class ForeignRef:
    """Anything else under ``refs/gpush/``; never pruned."""

    name: str


TrackingRef = Union[StateRef, FetchedRef, ForeignRef]


@dataclass
class RefScan:
    """All refs GC looks at, gathered in a single ``for-each-ref`` pass.

    Attributes:
        heads: Local branch name (without ``refs/heads/``) to tip hash.
        remote_refs: Full names of remote-tracking refs.
        state_refs: StateRefs grouped by sequence key.
        fetched_refs: FetchedRefs grouped by Gerrit change number.
        foreign_refs: Unrecognized private refs.
    """

    heads: dict[str, str] = field(default_factory=dict)
    remote_refs: set[str] = field(default_factory=set)
    state_refs: dict[str, list[StateRef]] = field(default_factory=dict)
    fetched_refs: dict[str, list[FetchedRef]] = field(default_factory=dict)
    foreign_refs: list[ForeignRef] = field(default_factory=list)


@dataclass(frozen=True)
class UpstreamInfo:
    """Remote-tracking refs local branches build on, and the remotes used."""

    exclude_refs: tuple[str, ...] = ()
    remotes: frozenset[str] = frozenset()


class PruneBucket(str, Enum):
    STATE = "state"
    FETCHED = "fetched"
    UNRECOGNIZED = "unrecognized"


@dataclass
class PruneSet:
    """Refs to delete, by bucket."""

    buckets: dict[PruneBucket, list[str]] = field(
        default_factory=lambda: {bucket: [] for bucket in PruneBucket}
    )

    def add(self, bucket: PruneBucket, refs: list[str]) -> None:
        self.buckets[bucket].extend(refs)

    def refs(self, bucket: PruneBucket) -> list[str]:
        return list(self.buckets[bucket])

    def flatten(self) -> list[str]:
        """Return every ref name, sorted, ready for deletion."""
        return sorted({ref for refs in self.buckets.values() for ref in refs})

    def __len__(self) -> int:
        return len(self.flatten())

    def __bool__(self) -> bool:
        return any(self.buckets.values())


@dataclass(frozen=True)
class StateDecision:
    """Outcome of deciding the fate of every StateRef.

    Attributes:
        kept_keys: Sequence keys whose StateRefs survive.
        prune: StateRef names to delete (Change inactive or unknown remotely).
        live_change_ids: Change-Ids that count as alive for fetched patchsets.
    """

    kept_keys: frozenset[str]
    prune: tuple[str, ...]
    live_change_ids: frozenset[str]


@dataclass(frozen=True)
class GcResult:
    """Summary of one GC run."""

    prune_set: PruneSet
    kept_state_keys: frozenset[str]
    kept_fetched_numbers: frozenset[str]
    dry_run: bool

    @property
    def pruned_refs(self) -> list[str]:
        return self.prune_set.flatten()
