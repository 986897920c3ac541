from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from stayfocused.core.tracing import TraceWriter, emit_trace
from stayfocused.core.types import FocusState, ToolUseBlock
from stayfocused.tools.registry import ToolRegistry
from stayfocused.tools.results import ToolResult

logger = logging.getLogger(__name__)


class ToolDispatcher:
    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    def execute(self, call: ToolUseBlock, state: FocusState) -> ToolResult:
        logger.info("tool %s %s", call.name, json.dumps(call.input, indent=2, ensure_ascii=False))
        spec = self._registry.get(call.name)
        if spec is None:
            return ToolResult(
                id=call.id,
                tool=call.name,
                ok=False,
                text=f"Error: Unknown tool '{call.name}'",
            )
        try:
            args = spec.args_model.model_validate(call.input)
        except ValidationError as exc:
            logger.warning("invalid arguments for %s: %s", call.name, exc)
            return ToolResult(
                id=call.id,
                tool=call.name,
                ok=False,
                text=f"Error: Invalid arguments for {call.name}",
            )
        return ToolResult(id=call.id, tool=call.name, ok=True, text=spec.handler(args, state))

    def execute_calls(
        self,
        calls: list[ToolUseBlock],
        state: FocusState,
        *,
        tracer: TraceWriter | None = None,
        round_index: int | None = None,
    ) -> list[ToolResult]:
        results: list[ToolResult] = []
        for call in calls:
            emit_trace(
                tracer, "tool_start", round=round_index, id=call.id, tool=call.name, args=call.input
            )
            result = self.execute(call, state)
            emit_trace(
                tracer,
                "tool_done",
                round=round_index,
                id=result.id,
                tool=result.tool,
                ok=result.ok,
                text=result.text,
            )
            results.append(result)
        return results

    def definitions(self) -> list[dict]:
        return self._registry.definitions()

    def list_tools(self) -> list[str]:
        return [spec.name for spec in self._registry.list_tools()]
