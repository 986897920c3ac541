from __future__ import annotations

import json
from pathlib import Path

import pytest

from stayfocused.backends.fake import FakeBackend
from stayfocused.backends.registry import BackendError
from stayfocused.core.types import FocusOptions, ModelResponse, TextBlock, ToolUseBlock
from stayfocused.runtime import controller, state_store


def _write_histfile(path: Path, lines: list[str]) -> None:
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")


def test_end_to_end_session_sets_objective(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["cd repo", "grep TODO", "vim notes.md"])
    state_path = tmp_path / "state.json"
    backend = FakeBackend(
        responses=[
            ModelResponse(
                content=[
                    ToolUseBlock(id="t1", name="set_primary_task", input={"task": "Clean up TODOs"})
                ],
                stop_reason="tool_use",
            ),
            ModelResponse(content=[TextBlock(text="Focused.")], stop_reason="end_turn"),
        ]
    )

    result = controller.run_session(
        state_path,
        backend,
        options=FocusOptions(source_path=str(histfile), window_capacity=10),
    )

    assert result.loop.rounds == 2
    assert result.merged_lines == ["cd repo", "grep TODO", "vim notes.md"]
    first_context = backend.calls[0].messages[0].content
    assert "<histfile>\ncd repo\ngrep TODO\nvim notes.md\n</histfile>" in first_context
    saved = state_store.load_state(state_path)
    assert saved.window == ["cd repo", "grep TODO", "vim notes.md"]
    assert saved.primary_objective == "Clean up TODOs"
    assert saved.side_quests is None
    assert saved.cursor == 3


def test_second_session_merges_only_new_lines(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["a", "b"])
    state_path = tmp_path / "state.json"
    options = FocusOptions(source_path=str(histfile), window_capacity=3)

    controller.run_session(state_path, FakeBackend(), options=options)
    _write_histfile(histfile, ["a", "b", "c", "d"])
    result = controller.run_session(state_path, FakeBackend(), options=options)

    assert result.merged_lines == ["c", "d"]
    assert state_store.load_state(state_path).window == ["b", "c", "d"]


def test_full_capped_histfile_keeps_syncing(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["cmd1", "cmd2", "cmd3", "cmd4", "cmd5"])
    state_path = tmp_path / "state.json"
    options = FocusOptions(source_path=str(histfile), window_capacity=5)

    controller.run_session(state_path, FakeBackend(), options=options)
    _write_histfile(histfile, ["cmd2", "cmd3", "cmd4", "cmd5", "cmd6"])
    result = controller.run_session(state_path, FakeBackend(), options=options)

    assert result.merged_lines == ["cmd6"]
    assert state_store.load_state(state_path).window == ["cmd2", "cmd3", "cmd4", "cmd5", "cmd6"]


def test_existing_options_win_over_new_options(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["one", "two", "three"])
    state_path = tmp_path / "state.json"
    controller.run_session(
        state_path, FakeBackend(), options=FocusOptions(str(histfile), window_capacity=2)
    )

    result = controller.run_session(
        state_path, FakeBackend(), options=FocusOptions("elsewhere", window_capacity=50)
    )

    assert result.state.options == FocusOptions(str(histfile), window_capacity=2)


def test_backend_failure_leaves_previous_state(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["ls"])
    state_path = tmp_path / "state.json"
    original = {
        "tail": [],
        "last_index": 0,
        "primary_objective": "Keep me",
        "side_quests": None,
        "options": {"source_path": str(histfile), "window_capacity": 10},
    }
    state_path.write_text(json.dumps(original), encoding="utf-8")

    class FailingBackend:
        def create_message(self, request):
            raise BackendError("boom")

    with pytest.raises(BackendError):
        controller.run_session(state_path, FailingBackend())

    assert json.loads(state_path.read_text(encoding="utf-8")) == original


def test_missing_histfile_is_an_error(tmp_path: Path) -> None:
    state_path = tmp_path / "state.json"

    with pytest.raises(FileNotFoundError):
        controller.run_session(
            state_path,
            FakeBackend(),
            options=FocusOptions(str(tmp_path / "nope"), window_capacity=5),
        )

    assert not state_path.exists()


def test_session_trace_written_when_requested(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["ls"])

    result = controller.run_session(
        tmp_path / "state.json",
        FakeBackend(),
        options=FocusOptions(str(histfile), 5),
        trace_dir=tmp_path / "traces",
    )

    assert result.trace_path is not None
    kinds = [
        json.loads(line)["kind"]
        for line in result.trace_path.read_text(encoding="utf-8").splitlines()
    ]
    assert kinds[0] == "session_start"
    assert kinds[-1] == "loop_done"


def test_session_uses_packaged_system_prompt(tmp_path: Path) -> None:
    histfile = tmp_path / ".histfile"
    _write_histfile(histfile, ["ls"])
    backend = FakeBackend()

    controller.run_session(
        tmp_path / "state.json", backend, options=FocusOptions(str(histfile), 5)
    )

    assert "set_primary_task" in (backend.calls[0].system or "")
