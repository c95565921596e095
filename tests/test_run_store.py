from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from forge.run_store import RunRecorder


def _recorder(tmp_path: Path) -> RunRecorder:
    return RunRecorder.start(tmp_path, "execute", now=lambda: datetime(2026, 2, 13, 1, 2, 3))


def test_run_root_is_named_after_start_time(tmp_path: Path):
    recorder = _recorder(tmp_path)
    assert recorder.run_id == "2026-02-13_010203"
    assert recorder.log_path == tmp_path / "2026-02-13_010203" / "run.log"
    assert recorder.report_path == tmp_path / "2026-02-13_010203" / "report.json"
    assert not recorder.root.exists()


def test_report_is_headed_by_run_identity(tmp_path: Path):
    recorder = _recorder(tmp_path)
    path = recorder.write_report({"response": {"ok": True}})
    assert json.loads(path.read_text(encoding="utf-8")) == {
        "run_id": "2026-02-13_010203",
        "command": "execute",
        "created_at": "2026-02-13T01:02:03",
        "response": {"ok": True},
    }


@pytest.mark.parametrize("bad", [object(), float("nan"), float("inf")])
def test_report_rejects_values_that_are_not_strict_json(tmp_path: Path, bad):
    recorder = _recorder(tmp_path)
    with pytest.raises((TypeError, ValueError)):
        recorder.write_report({"result": {"score": bad}})
    assert not recorder.report_path.exists()


def test_log_lines_carry_level_and_component(tmp_path: Path):
    recorder = _recorder(tmp_path)
    recorder.log("Unfilled placeholders: region", level="warning")
    recorder.event_logger("prompt_executor")("attempt=1 outcome=success duration_ms=12.0")
    lines = recorder.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert "| WARNING | cli             | Unfilled placeholders: region" in lines[0]
    assert lines[1].endswith("| prompt_executor | attempt=1 outcome=success duration_ms=12.0")
