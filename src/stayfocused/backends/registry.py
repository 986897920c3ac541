from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from stayfocused.core.types import Message, ModelResponse

TOOL_CHOICE_ANY = "any"


class BackendError(RuntimeError):
    """Transport or HTTP failure talking to a generation service."""


@dataclass(slots=True)
class MessageRequest:
    messages: list[Message]
    tools: list[dict[str, Any]] = field(default_factory=list)
    system: str | None = None
    max_tokens: int = 1000
    tool_choice: str = TOOL_CHOICE_ANY
    model: str | None = None


class Backend(Protocol):
    def create_message(self, request: MessageRequest) -> ModelResponse:
        ...


_BACKENDS: dict[str, Callable[..., Backend]] = {}


def register_backend(name: str, factory: Callable[..., Backend]) -> None:
    key = name.lower()
    if key in _BACKENDS:
        raise ValueError(f"Backend '{name}' is already registered")
    _BACKENDS[key] = factory


def get_backend(name: str, **kwargs: Any) -> Backend:
    key = name.lower()
    factory = _BACKENDS.get(key)
    if factory is None:
        available = ", ".join(list_backends())
        raise ValueError(f"Unknown backend '{name}'. Available backends: {available}")
    return factory(**kwargs)


def list_backends() -> list[str]:
    return sorted(_BACKENDS)
