from __future__ import annotations

import json
import logging
import os
import time
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
from stayfocused.core.types import ModelResponse, response_from_payload

logger = logging.getLogger(__name__)

API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-7-sonnet-latest"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class AnthropicBackend:
    api_key: str | None = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY"))
    base_url: str = field(
        default_factory=lambda: os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com")
    )
    model: str = field(default_factory=lambda: os.getenv("STAYFOCUSED_MODEL", DEFAULT_MODEL))
    timeout_s: float = field(default_factory=lambda: _env_float("ANTHROPIC_TIMEOUT_S", 60.0))
    log_payload: bool = field(
        default_factory=lambda: _env_bool("STAYFOCUSED_LOG_PAYLOAD", False)
    )

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise BackendError("ANTHROPIC_API_KEY is not set")
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": API_VERSION,
        }

    def _build_payload(self, request: MessageRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model or self.model,
            "max_tokens": request.max_tokens,
            "messages": [message.to_payload() for message in request.messages],
        }
        if request.system:
            payload["system"] = request.system
        if request.tools:
            payload["tools"] = request.tools
            if request.tool_choice == TOOL_CHOICE_ANY:
                payload["tool_choice"] = {"type": "any", "disable_parallel_tool_use": False}
            else:
                payload["tool_choice"] = {"type": request.tool_choice}
        return payload

    def create_message(self, request: MessageRequest) -> ModelResponse:
        payload = self._build_payload(request)
        url = f"{self.base_url.rstrip('/')}/v1/messages"
        if self.log_payload:
            logger.info("anthropic request %s", json.dumps(payload, indent=2, ensure_ascii=False))
        data = json.dumps(payload).encode("utf-8")
        http_request = urllib.request.Request(
            url, data=data, headers=self._headers(), method="POST"
        )
        start = time.monotonic()
        try:
            with urllib.request.urlopen(http_request, timeout=self.timeout_s) as response:
                body = response.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise BackendError(f"Anthropic API error ({exc.code}): {detail[:500]}") from exc
        except urllib.error.URLError as exc:
            raise BackendError(f"Anthropic API unreachable: {exc.reason}") from exc
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.debug("anthropic response in %sms", latency_ms)
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError as exc:
            raise BackendError("Anthropic API returned invalid JSON") from exc
        if not isinstance(parsed, dict):
            raise BackendError("Anthropic API returned a non-object body")
        try:
            return response_from_payload(parsed)
        except ValueError as exc:
            raise BackendError(f"Anthropic API returned an unsupported response: {exc}") from exc


register_backend("anthropic", AnthropicBackend)
