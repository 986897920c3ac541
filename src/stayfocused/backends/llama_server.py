from __future__ import annotations

import json
import logging
import os
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

from stayfocused.backends.registry import (
    TOOL_CHOICE_ANY,
    BackendError,
    MessageRequest,
    register_backend,
)
from stayfocused.core.types import (
    STOP_END_TURN,
    STOP_MAX_TOKENS,
    STOP_TOOL_USE,
    Message,
    ModelResponse,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
)

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _convert_message(message: Message) -> list[dict[str, Any]]:
    if isinstance(message.content, str):
        return [{"role": message.role, "content": message.content}]
    converted: list[dict[str, Any]] = []
    texts: list[str] = []
    tool_calls: list[dict[str, Any]] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            texts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(
                {
                    "id": block.id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.input)},
                }
            )
        elif isinstance(block, ToolResultBlock):
            converted.append(
                {"role": "tool", "tool_call_id": block.tool_use_id, "content": block.content}
            )
    if texts or tool_calls:
        entry: dict[str, Any] = {"role": message.role, "content": "\n".join(texts)}
        if tool_calls:
            entry["tool_calls"] = tool_calls
        converted.insert(0, entry)
    return converted


def _convert_tool(definition: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": definition["name"],
            "description": definition.get("description", ""),
            "parameters": definition.get("input_schema", {"type": "object"}),
        },
    }


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


@dataclass(slots=True)
class LlamaServerBackend:
    base_url: str = field(
        default_factory=lambda: os.getenv("LLAMA_SERVER_BASE_URL", "http://127.0.0.1:8080")
    )
    timeout_s: float = field(default_factory=lambda: _env_float("LLAMA_SERVER_TIMEOUT_S", 60.0))
    api_key: str | None = field(default_factory=lambda: os.getenv("LLAMA_SERVER_API_KEY"))
    model: str | None = field(default_factory=lambda: os.getenv("LLAMA_SERVER_MODEL"))

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_payload(self, request: MessageRequest) -> dict[str, Any]:
        messages: list[dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        for message in request.messages:
            messages.extend(_convert_message(message))
        payload: dict[str, Any] = {
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": 0,
            "cache_prompt": False,
        }
        model = request.model or self.model
        if model:
            payload["model"] = model
        if request.tools:
            payload["tools"] = [_convert_tool(tool) for tool in request.tools]
            payload["tool_choice"] = "required" if request.tool_choice == TOOL_CHOICE_ANY else "auto"
        return payload

    @staticmethod
    def _extract_response(data: dict[str, Any]) -> ModelResponse:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ModelResponse(content=[], stop_reason=STOP_END_TURN)
        first = choices[0]
        message = first.get("message") if isinstance(first.get("message"), dict) else {}
        blocks: list[Any] = []
        reasoning = message.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            blocks.append(ThinkingBlock(thinking=reasoning))
        content = message.get("content")
        if isinstance(content, str) and content:
            blocks.append(TextBlock(text=content))
        tool_calls = message.get("tool_calls")
        if isinstance(tool_calls, list):
            for index, call in enumerate(tool_calls, start=1):
                if not isinstance(call, dict):
                    continue
                function = call.get("function") if isinstance(call.get("function"), dict) else {}
                name = function.get("name")
                if not isinstance(name, str):
                    continue
                call_id = call.get("id") if isinstance(call.get("id"), str) else f"call-{index}"
                blocks.append(
                    ToolUseBlock(
                        id=call_id,
                        name=name,
                        input=_parse_arguments(function.get("arguments")),
                    )
                )
        finish_reason = first.get("finish_reason")
        if any(isinstance(block, ToolUseBlock) for block in blocks):
            stop_reason = STOP_TOOL_USE
        elif finish_reason == "length":
            stop_reason = STOP_MAX_TOKENS
        else:
            stop_reason = STOP_END_TURN
        return ModelResponse(content=blocks, stop_reason=stop_reason)

    def create_message(self, request: MessageRequest) -> ModelResponse:
        payload = self._build_payload(request)
        url = f"{self.base_url.rstrip('/')}/v1/chat/completions"
        logger.debug("llama request %s", json.dumps(payload, ensure_ascii=False))
        data = json.dumps(payload).encode("utf-8")
        http_request = urllib.request.Request(
            url, data=data, headers=self._headers(), method="POST"
        )
        try:
            with urllib.request.urlopen(http_request, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            raise BackendError(f"llama server error ({exc.code})") from exc
        except urllib.error.URLError as exc:
            raise BackendError(f"llama server unreachable: {exc.reason}") from exc
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise BackendError("llama server returned invalid JSON") from exc
        if not isinstance(parsed, dict):
            raise BackendError("llama server returned a non-object body")
        return self._extract_response(parsed)


register_backend("llama", LlamaServerBackend)
