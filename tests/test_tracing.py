from __future__ import annotations

import json
from pathlib import Path

from stayfocused.admin.trace_parser import parse_trace_file
from stayfocused.core.tracing import TraceEvent, TraceWriter, new_run_id


def test_trace_writer_emits_jsonl(tmp_path: Path) -> None:
    writer = TraceWriter(tmp_path / "data" / "traces", "run-1")
    event = TraceEvent(kind="note", ts=123.0, data={"ok": True})

    path = writer.write(event)

    assert path == tmp_path / "data" / "traces" / "run-1.jsonl"
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    parsed = json.loads(lines[0])
    assert parsed == {"ts": 123.0, "kind": "note", "data": {"ok": True}}


def test_new_run_ids_are_distinct() -> None:
    assert new_run_id() != new_run_id()


def test_parse_trace_file_groups_rounds(tmp_path: Path) -> None:
    writer = TraceWriter(tmp_path, "run-2")
    writer.emit("session_start", source_path=".histfile", merged=["ls"], cursor=1)
    writer.emit("llm_req", round=1, messages=[])
    writer.emit("llm_done", round=1, stop_reason="tool_use", content=[])
    writer.emit("tool_start", round=1, id="t1", tool="set_primary_task", args={"task": "X"})
    writer.emit("tool_done", round=1, id="t1", tool="set_primary_task", ok=True, text="ok")
    writer.emit("llm_req", round=2, messages=[])
    writer.emit("llm_done", round=2, stop_reason="end_turn", content=[])
    writer.emit("loop_done", rounds=2, stop_reason="end_turn", budget_exhausted=False)

    parsed = parse_trace_file(writer.path)

    assert parsed["session"]["merged"] == ["ls"]
    assert [entry["stop_reason"] for entry in parsed["rounds"]] == ["tool_use", "end_turn"]
    assert parsed["rounds"][0]["tool_calls"][0]["args"] == {"task": "X"}
    assert parsed["tool_calls"][0]["ok"] is True
    assert parsed["summary"]["rounds"] == 2


def test_parse_trace_file_missing(tmp_path: Path) -> None:
    parsed = parse_trace_file(tmp_path / "absent.jsonl")

    assert parsed["events"] == []
    assert parsed["summary"] is None
