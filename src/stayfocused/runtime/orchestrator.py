from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List

from stayfocused.backends.registry import TOOL_CHOICE_ANY, Backend, MessageRequest
from stayfocused.core.tracing import TraceWriter, emit_trace
from stayfocused.core.types import (
    STOP_TOOL_USE,
    FocusState,
    Message,
    ToolUseBlock,
    block_to_payload,
    normalize_block,
)
from stayfocused.tools.executor import ToolDispatcher
from stayfocused.tools.results import ToolResult

logger = logging.getLogger(__name__)

MAX_ROUNDS = 3
DEFAULT_MAX_TOKENS = 1000


@dataclass(slots=True)
class LoopResult:
    rounds: int
    stop_reason: str | None
    transcript: List[Message] = field(default_factory=list)
    final_text: str = ""
    tool_results: List[ToolResult] = field(default_factory=list)
    budget_exhausted: bool = False


def run_focus_loop(
    state: FocusState,
    backend: Backend,
    dispatcher: ToolDispatcher,
    *,
    system_prompt: str | None = None,
    max_rounds: int = MAX_ROUNDS,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    tool_choice: str = TOOL_CHOICE_ANY,
    model: str | None = None,
    tracer: TraceWriter | None = None,
) -> LoopResult:
    """Run request/response rounds until the model stops asking for tools.

    Tool calls only ever mutate ``state`` through ``dispatcher``. At most
    ``max_rounds`` requests are issued; hitting that limit ends the loop
    normally with whatever state has accumulated.
    """
    if max_rounds < 1:
        raise ValueError("max_rounds must be at least 1")
    tools = dispatcher.definitions()
    result = LoopResult(rounds=0, stop_reason=None)
    result.transcript.append(Message(role="user", content=state.render_context()))

    while True:
        request = MessageRequest(
            messages=list(result.transcript),
            tools=tools,
            system=system_prompt,
            max_tokens=max_tokens,
            tool_choice=tool_choice,
            model=model,
        )
        result.rounds += 1
        emit_trace(
            tracer,
            "llm_req",
            round=result.rounds,
            messages=[message.to_payload() for message in request.messages],
            tool_choice=tool_choice,
        )
        start = time.monotonic()
        response = backend.create_message(request)
        duration_ms = int((time.monotonic() - start) * 1000)

        assistant_blocks = [normalize_block(block) for block in response.content]
        result.transcript.append(Message(role="assistant", content=assistant_blocks))
        result.stop_reason = response.stop_reason
        result.final_text = response.text()
        emit_trace(
            tracer,
            "llm_done",
            round=result.rounds,
            stop_reason=response.stop_reason,
            content=[block_to_payload(block) for block in assistant_blocks],
            duration_ms=duration_ms,
        )
        logger.info("round %s stop_reason=%s", result.rounds, response.stop_reason)

        calls = [block for block in assistant_blocks if isinstance(block, ToolUseBlock)]
        if response.stop_reason != STOP_TOOL_USE or not calls:
            break

        round_results = dispatcher.execute_calls(
            calls, state, tracer=tracer, round_index=result.rounds
        )
        result.tool_results.extend(round_results)
        result.transcript.append(
            Message(role="user", content=[item.to_block() for item in round_results])
        )

        if result.rounds >= max_rounds:
            result.budget_exhausted = True
            logger.info("turn budget of %s rounds exhausted", max_rounds)
            break

    emit_trace(
        tracer,
        "loop_done",
        rounds=result.rounds,
        stop_reason=result.stop_reason,
        budget_exhausted=result.budget_exhausted,
        final_text=result.final_text,
        primary_objective=state.primary_objective,
        side_quests=state.side_quests,
    )
    return result
