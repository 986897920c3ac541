"""Runtime orchestration for the focus loop."""

from . import controller, history, orchestrator, state_store
from .controller import SessionResult, refresh_window, run_session
from .history import merge_window, read_new_lines
from .orchestrator import MAX_ROUNDS, LoopResult, run_focus_loop
from .state_store import load_or_create, load_state, save_state

__all__ = [
    "LoopResult",
    "MAX_ROUNDS",
    "SessionResult",
    "controller",
    "history",
    "load_or_create",
    "load_state",
    "merge_window",
    "orchestrator",
    "read_new_lines",
    "refresh_window",
    "run_focus_loop",
    "run_session",
    "save_state",
    "state_store",
]
