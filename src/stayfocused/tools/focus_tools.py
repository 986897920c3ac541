from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from stayfocused.core.types import FocusState

SET_PRIMARY_TASK = "set_primary_task"
SET_SIDE_QUESTS = "set_side_quests"
NOP = "nop"


class SetPrimaryTaskArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    task: str


class SetSideQuestsArgs(BaseModel):
    model_config = ConfigDict(strict=True)

    side_quests: list[str]


class NopArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


def set_primary_task_handler(args: SetPrimaryTaskArgs, state: FocusState) -> str:
    state.primary_objective = args.task
    return f"Primary task set to: {args.task}"


def set_side_quests_handler(args: SetSideQuestsArgs, state: FocusState) -> str:
    state.side_quests = list(args.side_quests)
    return f"Side quests set: {args.side_quests!r}"


def nop_handler(_args: NopArgs, _state: FocusState) -> str:
    return "No changes made."
