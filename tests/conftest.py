# ruff: noqa: E402

import builtins
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import gpush.log as gpush_log


@pytest.fixture(autouse=True)
def _default_log_state(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GPUSH_LOG_LEVEL", raising=False)
    monkeypatch.setattr(gpush_log, "_configured_level", None)
    monkeypatch.setattr(gpush_log, "_no_color", False)

    def fail_input(prompt: str = "") -> str:
        raise AssertionError("prompted unexpectedly")

    monkeypatch.setattr(builtins, "input", fail_input)
