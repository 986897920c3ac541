from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Union

STOP_TOOL_USE = "tool_use"
STOP_END_TURN = "end_turn"
STOP_MAX_TOKENS = "max_tokens"

REDACTED_THINKING_TEXT = "[Thinking was redacted]"


class ProtocolViolation(RuntimeError):
    """The generation service returned content this session never asked for."""


@dataclass(slots=True)
class FocusOptions:
    source_path: str = ".histfile"
    window_capacity: int = 10


@dataclass(slots=True)
class FocusState:
    window: List[str] = field(default_factory=list)
    cursor: int = 0
    primary_objective: str | None = None
    side_quests: List[str] | None = None
    options: FocusOptions = field(default_factory=FocusOptions)

    @property
    def capacity(self) -> int:
        return self.options.window_capacity

    def render_context(self) -> str:
        objectives = ""
        if self.primary_objective is not None:
            objectives += f"Primary objective: {self.primary_objective}\n"
        if self.side_quests:
            objectives += "Side quests:\n"
            for quest in self.side_quests:
                objectives += f"- {quest}\n"
        histfile = "<histfile>\n" + "\n".join(self.window) + "\n</histfile>\n"
        return objectives + histfile


@dataclass(slots=True)
class TextBlock:
    text: str
    type: str = field(default="text", init=False)


@dataclass(slots=True)
class ToolUseBlock:
    id: str
    name: str
    input: dict[str, Any]
    type: str = field(default="tool_use", init=False)


@dataclass(slots=True)
class ToolResultBlock:
    tool_use_id: str
    content: str
    is_error: bool = False
    type: str = field(default="tool_result", init=False)


@dataclass(slots=True)
class ThinkingBlock:
    thinking: str
    signature: str = ""
    type: str = field(default="thinking", init=False)


@dataclass(slots=True)
class RedactedThinkingBlock:
    data: str = ""
    type: str = field(default="redacted_thinking", init=False)


@dataclass(slots=True)
class ServerToolUseBlock:
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="server_tool_use", init=False)


ResponseBlock = Union[
    TextBlock, ToolUseBlock, ThinkingBlock, RedactedThinkingBlock, ServerToolUseBlock
]
MessageBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(slots=True)
class Message:
    role: str
    content: str | List[MessageBlock]

    def to_payload(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [block_to_payload(b) for b in self.content]}


@dataclass(slots=True)
class ModelResponse:
    content: List[ResponseBlock] = field(default_factory=list)
    stop_reason: str | None = None

    def tool_uses(self) -> list[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def text(self) -> str:
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


def normalize_block(block: ResponseBlock) -> MessageBlock:
    """Map a response block onto what may be sent back as an assistant turn."""
    if isinstance(block, (TextBlock, ToolUseBlock)):
        return block
    if isinstance(block, ThinkingBlock):
        return TextBlock(text=block.thinking)
    if isinstance(block, RedactedThinkingBlock):
        return TextBlock(text=REDACTED_THINKING_TEXT)
    if isinstance(block, ServerToolUseBlock):
        raise ProtocolViolation(f"unexpected server tool use '{block.name}'")
    raise TypeError(f"unsupported content block {type(block).__name__}")


def block_to_payload(block: MessageBlock) -> dict[str, Any]:
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if isinstance(block, ToolResultBlock):
        payload: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": block.tool_use_id,
            "content": block.content,
        }
        if block.is_error:
            payload["is_error"] = True
        return payload
    raise TypeError(f"unsupported message block {type(block).__name__}")


def block_from_payload(payload: dict[str, Any]) -> ResponseBlock:
    kind = payload.get("type")
    if kind == "text":
        return TextBlock(text=str(payload.get("text", "")))
    if kind == "tool_use":
        tool_input = payload.get("input")
        return ToolUseBlock(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            input=tool_input if isinstance(tool_input, dict) else {},
        )
    if kind == "thinking":
        return ThinkingBlock(
            thinking=str(payload.get("thinking", "")),
            signature=str(payload.get("signature", "")),
        )
    if kind == "redacted_thinking":
        return RedactedThinkingBlock(data=str(payload.get("data", "")))
    if kind == "server_tool_use":
        tool_input = payload.get("input")
        return ServerToolUseBlock(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            input=tool_input if isinstance(tool_input, dict) else {},
        )
    raise ValueError(f"unknown content block type {kind!r}")


def response_from_payload(payload: dict[str, Any]) -> ModelResponse:
    content = payload.get("content")
    if not isinstance(content, list):
        raise ValueError("response content must be a list")
    blocks = [block_from_payload(item) for item in content if isinstance(item, dict)]
    stop_reason = payload.get("stop_reason")
    return ModelResponse(
        content=blocks,
        stop_reason=stop_reason if isinstance(stop_reason, str) else None,
    )
