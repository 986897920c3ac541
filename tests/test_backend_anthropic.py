from __future__ import annotations

import io
import json
import logging
import urllib.error

import pytest

from stayfocused.backends.anthropic import AnthropicBackend
from stayfocused.backends.registry import BackendError, MessageRequest
from stayfocused.core.types import Message, ThinkingBlock, ToolResultBlock, ToolUseBlock


def _fake_urlopen_factory(calls, response_payload: bytes):
    class FakeResponse:
        def read(self) -> bytes:
            return response_payload

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb) -> bool:
            return False

    def fake_urlopen(request, timeout=0):
        calls.append(request)
        return FakeResponse()

    return fake_urlopen


def _request() -> MessageRequest:
    return MessageRequest(
        messages=[
            Message(role="user", content="<histfile>\nls\n</histfile>\n"),
            Message(
                role="assistant",
                content=[ToolUseBlock(id="tu1", name="nop", input={})],
            ),
            Message(
                role="user",
                content=[ToolResultBlock(tool_use_id="tu1", content="Error: x", is_error=True)],
            ),
        ],
        tools=[{"name": "nop", "description": "Do nothing.", "input_schema": {"type": "object"}}],
        system="Stay focused.",
        max_tokens=1000,
    )


def test_anthropic_backend_builds_messages_request(monkeypatch) -> None:
    calls: list[object] = []
    body = {
        "content": [
            {"type": "thinking", "thinking": "hmm", "signature": "sig"},
            {"type": "tool_use", "id": "tu2", "name": "set_primary_task", "input": {"task": "T"}},
        ],
        "stop_reason": "tool_use",
    }
    monkeypatch.setattr(
        "stayfocused.backends.anthropic.urllib.request.urlopen",
        _fake_urlopen_factory(calls, json.dumps(body).encode("utf-8")),
    )
    backend = AnthropicBackend(api_key="sk-test", base_url="https://example.com/", model="m-1")

    response = backend.create_message(_request())

    request = calls[0]
    assert request.full_url == "https://example.com/v1/messages"
    assert request.get_header("X-api-key") == "sk-test"
    assert request.get_header("Anthropic-version") == "2023-06-01"
    payload = json.loads(request.data.decode("utf-8"))
    assert payload["model"] == "m-1"
    assert payload["system"] == "Stay focused."
    assert payload["tool_choice"] == {"type": "any", "disable_parallel_tool_use": False}
    assert payload["messages"][2]["content"][0] == {
        "type": "tool_result",
        "tool_use_id": "tu1",
        "content": "Error: x",
        "is_error": True,
    }
    assert response.stop_reason == "tool_use"
    assert isinstance(response.content[0], ThinkingBlock)
    assert response.tool_uses()[0].input == {"task": "T"}


def test_anthropic_backend_requires_api_key(monkeypatch) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    backend = AnthropicBackend()

    with pytest.raises(BackendError, match="ANTHROPIC_API_KEY"):
        backend.create_message(_request())


def test_anthropic_backend_wraps_http_errors(monkeypatch) -> None:
    def failing_urlopen(request, timeout=0):
        raise urllib.error.HTTPError(
            request.full_url, 529, "Overloaded", {}, io.BytesIO(b'{"error": "overloaded"}')
        )

    monkeypatch.setattr("stayfocused.backends.anthropic.urllib.request.urlopen", failing_urlopen)
    backend = AnthropicBackend(api_key="sk-test")

    with pytest.raises(BackendError, match="529"):
        backend.create_message(_request())


def test_anthropic_backend_logs_payload_when_enabled(monkeypatch, caplog) -> None:
    monkeypatch.setenv("STAYFOCUSED_LOG_PAYLOAD", "1")
    calls: list[object] = []
    body = {"content": [{"type": "text", "text": "ok"}], "stop_reason": "end_turn"}
    monkeypatch.setattr(
        "stayfocused.backends.anthropic.urllib.request.urlopen",
        _fake_urlopen_factory(calls, json.dumps(body).encode("utf-8")),
    )
    backend = AnthropicBackend(api_key="sk-test")

    with caplog.at_level(logging.INFO, logger="stayfocused.backends.anthropic"):
        response = backend.create_message(_request())

    assert response.text() == "ok"
    assert any(
        "Stay focused." in record.getMessage()
        for record in caplog.records
        if record.name == "stayfocused.backends.anthropic"
    )


def test_anthropic_backend_rejects_unknown_block_types(monkeypatch) -> None:
    body = {"content": [{"type": "hologram", "data": "?"}], "stop_reason": "end_turn"}
    monkeypatch.setattr(
        "stayfocused.backends.anthropic.urllib.request.urlopen",
        _fake_urlopen_factory([], json.dumps(body).encode("utf-8")),
    )
    backend = AnthropicBackend(api_key="sk-test")

    with pytest.raises(BackendError, match="unsupported response"):
        backend.create_message(_request())
