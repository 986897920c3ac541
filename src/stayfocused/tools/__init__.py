from __future__ import annotations

from stayfocused.tools.executor import ToolDispatcher
from stayfocused.tools.focus_tools import (
    NOP,
    SET_PRIMARY_TASK,
    SET_SIDE_QUESTS,
    NopArgs,
    SetPrimaryTaskArgs,
    SetSideQuestsArgs,
    nop_handler,
    set_primary_task_handler,
    set_side_quests_handler,
)
from stayfocused.tools.registry import ToolRegistry
from stayfocused.tools.results import ToolResult


def build_default_registry() -> tuple[ToolRegistry, ToolDispatcher]:
    registry = ToolRegistry()
    registry.register(NOP, nop_handler, NopArgs, "Do nothing.")
    registry.register(
        SET_PRIMARY_TASK,
        set_primary_task_handler,
        SetPrimaryTaskArgs,
        "Set the user's primary task.",
    )
    registry.register(
        SET_SIDE_QUESTS,
        set_side_quests_handler,
        SetSideQuestsArgs,
        "Set the user's side quests.",
    )
    dispatcher = ToolDispatcher(registry)
    return registry, dispatcher


__all__ = [
    "ToolDispatcher",
    "ToolRegistry",
    "ToolResult",
    "build_default_registry",
]
