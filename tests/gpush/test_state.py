import json
from pathlib import Path

import pytest

from gpush import state
from gpush.models import ChangeRecord, StateDocument
from tests.gpush.helpers import write_state


def test_load_state_missing_file_is_empty(tmp_path: Path) -> None:
    document = state.load_state(tmp_path)

    assert document.changes == []
    assert document.version == 1


def test_load_state_reads_records_and_ignores_unknown_fields(tmp_path: Path) -> None:
    path = state.state_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "next_key": 9,
                "changes": [
                    {"key": 3, "change_id": " I03 ", "topic": "x"},
                    {"key": "4", "change_id": "I04"},
                ],
            }
        ),
        encoding="utf-8",
    )

    records = state.change_records_by_key(state.load_state(tmp_path))

    assert sorted(records) == ["3", "4"]
    assert records["3"].change_id == "I03"


def test_change_records_by_key_last_entry_wins() -> None:
    document = StateDocument(
        changes=[
            ChangeRecord(key="1", change_id="Iold"),
            ChangeRecord(key="1", change_id="Inew"),
        ]
    )

    assert state.change_records_by_key(document)["1"].change_id == "Inew"


@pytest.mark.parametrize(
    "payload",
    ["{broken", json.dumps({"changes": [{"key": "1"}]}), json.dumps({"changes": "nope"})],
)
def test_load_state_rejects_unusable_documents(tmp_path: Path, payload: str) -> None:
    path = state.state_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(payload, encoding="utf-8")

    with pytest.raises(state.StateError, match="failed to read"):
        state.load_state(tmp_path)


def test_load_state_reads_dumped_document(tmp_path: Path) -> None:
    document = StateDocument(changes=[ChangeRecord(key="7", change_id="I07")])

    write_state(tmp_path, document)

    assert state.state_path(tmp_path) == tmp_path / "gpush" / "state.json"
    assert state.load_state(tmp_path).changes == document.changes
