from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from stayfocused.backends.registry import Backend
from stayfocused.core.tracing import TraceWriter, emit_trace, new_run_id
from stayfocused.core.types import FocusOptions, FocusState
from stayfocused.prompts import get_system_prompt
from stayfocused.runtime.history import merge_window, read_new_lines
from stayfocused.runtime.orchestrator import DEFAULT_MAX_TOKENS, LoopResult, run_focus_loop
from stayfocused.runtime.state_store import load_or_create, save_state
from stayfocused.tools import build_default_registry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionResult:
    state: FocusState
    loop: LoopResult
    state_path: Path
    merged_lines: list[str] = field(default_factory=list)
    trace_path: Path | None = None


def refresh_window(state: FocusState) -> list[str]:
    """Merge unseen histfile lines into the window and advance the cursor."""
    lines, cursor = read_new_lines(
        Path(state.options.source_path), state.window, state.cursor, state.capacity
    )
    state.window = merge_window(state.window, lines, state.capacity)
    state.cursor = cursor
    return lines


def run_session(
    state_path: Path,
    backend: Backend,
    *,
    options: FocusOptions | None = None,
    model: str | None = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    trace_dir: Path | None = None,
    system_prompt: str | None = None,
) -> SessionResult:
    # Nothing is written to state_path unless the whole session succeeds.
    state = load_or_create(state_path, options)
    merged = refresh_window(state)
    logger.info("merged %s new lines from %s", len(merged), state.options.source_path)

    tracer = TraceWriter(trace_dir, new_run_id()) if trace_dir is not None else None
    emit_trace(
        tracer,
        "session_start",
        state_path=str(state_path),
        source_path=state.options.source_path,
        merged=merged,
        cursor=state.cursor,
    )

    _registry, dispatcher = build_default_registry()
    loop = run_focus_loop(
        state,
        backend,
        dispatcher,
        system_prompt=system_prompt if system_prompt is not None else get_system_prompt(),
        max_tokens=max_tokens,
        model=model,
        tracer=tracer,
    )
    save_state(state, state_path)
    return SessionResult(
        state=state,
        loop=loop,
        state_path=state_path,
        merged_lines=merged,
        trace_path=tracer.path if tracer is not None else None,
    )
