"""Core data contracts and utilities."""

from .tracing import TraceEvent, TraceWriter
from .types import FocusOptions, FocusState, Message, ModelResponse, ProtocolViolation

__all__ = [
    "FocusOptions",
    "FocusState",
    "Message",
    "ModelResponse",
    "ProtocolViolation",
    "TraceEvent",
    "TraceWriter",
]
