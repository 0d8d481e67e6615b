"""Tests for gc.scan."""

from pathlib import Path

import pytest

from gpush.gc.models import FetchedRef, ForeignRef, StateRef
from gpush.gc.scan import classify_tracking_ref, scan_refs
from tests.gpush.helpers import FakeRepo


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("refs/gpush/i12_pushed", StateRef(name="refs/gpush/i12_pushed", key="12")),
        ("refs/gpush/i12_base", StateRef(name="refs/gpush/i12_base", key="12")),
        ("refs/gpush/g4711_3", FetchedRef(name="refs/gpush/g4711_3", number="4711", sha="s")),
        ("refs/gpush/state", ForeignRef(name="refs/gpush/state")),
        ("refs/gpush/i_pushed", ForeignRef(name="refs/gpush/i_pushed")),
        ("refs/gpush/ix1_pushed", ForeignRef(name="refs/gpush/ix1_pushed")),
        ("refs/gpush/g12", ForeignRef(name="refs/gpush/g12")),
    ],
)
def test_classify_tracking_ref(name: str, expected: object) -> None:
    assert classify_tracking_ref(name, "s") == expected


def test_scan_refs_groups_refs_in_one_pass() -> None:
    repo = FakeRepo()
    repo.commit("c1")
    repo.commit("c2", "c1")
    repo.branch("main", "c1")
    repo.branch("feature/x", "c2")
    repo.ref("refs/remotes/gerrit/dev", "c1")
    repo.ref("refs/gpush/i1_pushed", "c2")
    repo.ref("refs/gpush/i1_base", "c1")
    repo.ref("refs/gpush/g10_1", "c1")
    repo.ref("refs/gpush/g10_2", "c2")
    repo.ref("refs/gpush/marker", "c1")
    repo.ref("refs/tags/v1", "c1")

    with repo.patched():
        scan = scan_refs(Path("/repo"))

    assert scan.heads == {"main": "c1", "feature/x": "c2"}
    assert scan.remote_refs == {"refs/remotes/gerrit/dev"}
    assert [ref.name for ref in scan.state_refs["1"]] == [
        "refs/gpush/i1_base",
        "refs/gpush/i1_pushed",
    ]
    assert [ref.sha for ref in scan.fetched_refs["10"]] == ["c1", "c2"]
    assert scan.foreign_refs == [ForeignRef(name="refs/gpush/marker")]
