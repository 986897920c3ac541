"""Backend implementations."""

from .anthropic import AnthropicBackend
from .fake import FakeBackend
from .llama_server import LlamaServerBackend
from .registry import (
    Backend,
    BackendError,
    MessageRequest,
    get_backend,
    list_backends,
    register_backend,
)

__all__ = [
    "AnthropicBackend",
    "Backend",
    "BackendError",
    "FakeBackend",
    "LlamaServerBackend",
    "MessageRequest",
    "get_backend",
    "list_backends",
    "register_backend",
]
