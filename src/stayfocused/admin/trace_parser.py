from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def _parse_line(line: str) -> dict[str, Any] | None:
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def _new_round(number: int) -> dict[str, Any]:
    return {
        "round": number,
        "llm_req": None,
        "llm_done": None,
        "stop_reason": None,
        "tool_calls": [],
    }


def parse_trace_file(path: Path) -> dict[str, Any]:
    events: list[dict[str, Any]] = []
    rounds: dict[int, dict[str, Any]] = {}
    tool_calls: dict[str, dict[str, Any]] = {}
    session: dict[str, Any] | None = None
    summary: dict[str, Any] | None = None

    if not path.exists():
        return {"events": [], "session": None, "rounds": [], "tool_calls": [], "summary": None}

    for line in path.read_text(encoding="utf-8").splitlines():
        payload = _parse_line(line)
        if payload is None:
            continue
        kind = payload.get("kind")
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        event = {"ts": payload.get("ts"), "kind": kind, "data": data}
        events.append(event)

        round_number = data.get("round")
        entry = None
        if isinstance(round_number, int):
            entry = rounds.setdefault(round_number, _new_round(round_number))

        if kind == "session_start":
            session = data
        elif kind == "llm_req" and entry is not None:
            entry["llm_req"] = event
        elif kind == "llm_done" and entry is not None:
            entry["llm_done"] = event
            entry["stop_reason"] = data.get("stop_reason")
        elif kind in {"tool_start", "tool_done"}:
            tool_id = data.get("id")
            if not isinstance(tool_id, str):
                continue
            call = tool_calls.get(tool_id)
            if call is None:
                call = {
                    "id": tool_id,
                    "tool": data.get("tool"),
                    "round": round_number,
                    "args": None,
                    "ok": None,
                    "text": None,
                }
                tool_calls[tool_id] = call
                if entry is not None:
                    entry["tool_calls"].append(call)
            if kind == "tool_start":
                call["args"] = data.get("args")
            else:
                call["ok"] = data.get("ok")
                call["text"] = data.get("text")
        elif kind == "loop_done":
            summary = data

    return {
        "events": events,
        "session": session,
        "rounds": [rounds[key] for key in sorted(rounds)],
        "tool_calls": list(tool_calls.values()),
        "summary": summary,
    }
