from __future__ import annotations

from dataclasses import dataclass

from stayfocused.core.types import ToolResultBlock


@dataclass(slots=True)
class ToolResult:
    id: str
    tool: str
    ok: bool
    text: str

    def to_block(self) -> ToolResultBlock:
        return ToolResultBlock(tool_use_id=self.id, content=self.text, is_error=not self.ok)
