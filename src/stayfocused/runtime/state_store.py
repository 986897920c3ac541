from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from stayfocused.core.types import FocusOptions, FocusState


def state_to_payload(state: FocusState) -> dict[str, Any]:
    return {
        "tail": list(state.window),
        "last_index": state.cursor,
        "primary_objective": state.primary_objective,
        "side_quests": list(state.side_quests) if state.side_quests is not None else None,
        "options": {
            "source_path": state.options.source_path,
            "window_capacity": state.options.window_capacity,
        },
    }


def save_state(state: FocusState, path: Path) -> Path:
    payload = state_to_payload(state)
    # refuse to write a document load_state would reject
    _ensure_capacity(state.options.window_capacity)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False))
            handle.flush()
            os.fsync(handle.fileno())
        temp_path.replace(path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise
    return path


def _ensure_list_of_str(value: Any, field_name: str) -> list[str]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    raise ValueError(f"state field '{field_name}' must be list[str]")


def _ensure_optional_str(value: Any, field_name: str) -> str | None:
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"state field '{field_name}' must be str or null")


def _ensure_count(value: Any, field_name: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    raise ValueError(f"state field '{field_name}' must be a non-negative int")


def _ensure_capacity(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    raise ValueError("state option 'window_capacity' must be a positive int")


def _coerce_options(payload: Any) -> FocusOptions:
    if not isinstance(payload, dict):
        raise ValueError("state options must be an object")
    source_path = payload.get("source_path", payload.get("histfile"))
    capacity = payload.get("window_capacity", payload.get("tail"))
    if not isinstance(source_path, str):
        raise ValueError("state option 'source_path' must be str")
    return FocusOptions(
        source_path=source_path,
        window_capacity=_ensure_capacity(capacity),
    )


def state_from_payload(payload: Any) -> FocusState:
    if not isinstance(payload, dict):
        raise ValueError("state payload must be an object")
    options = _coerce_options(payload.get("options"))
    side_quests = payload.get("side_quests")
    window = _ensure_list_of_str(payload.get("tail"), "tail")
    return FocusState(
        window=window[-options.window_capacity :],
        cursor=_ensure_count(payload.get("last_index"), "last_index"),
        primary_objective=_ensure_optional_str(
            payload.get("primary_objective"), "primary_objective"
        ),
        side_quests=None if side_quests is None else _ensure_list_of_str(side_quests, "side_quests"),
        options=options,
    )


def load_state(path: Path) -> FocusState:
    # FileNotFoundError propagates; the caller decides whether absence is fine.
    text = path.read_text(encoding="utf-8")
    return state_from_payload(json.loads(text))


def load_or_create(path: Path, options: FocusOptions | None = None) -> FocusState:
    try:
        return load_state(path)
    except FileNotFoundError:
        state = FocusState(options=options or FocusOptions())
        _ensure_capacity(state.options.window_capacity)
        return state
