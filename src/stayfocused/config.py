from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

STATE_ENV = "STAYFOCUSED_STATE"
DEFAULT_BACKEND = "anthropic"
DEFAULT_MAX_TOKENS = 1000


class ConfigError(RuntimeError):
    """Required configuration is missing or malformed."""


@dataclass(frozen=True, slots=True)
class FocusConfig:
    state_path: Path | None
    backend: str
    model: str | None
    max_tokens: int
    trace_dir: Path | None
    admin_token: str | None

    def require_state_path(self) -> Path:
        if self.state_path is None:
            raise ConfigError(f"You should set {STATE_ENV} in your environment.")
        return self.state_path


def _env_path(name: str) -> Path | None:
    raw = os.getenv(name)
    if not raw:
        return None
    return Path(raw).expanduser()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive")
    return value


def load_config() -> FocusConfig:
    return FocusConfig(
        state_path=_env_path(STATE_ENV),
        backend=os.getenv("STAYFOCUSED_BACKEND", DEFAULT_BACKEND),
        model=os.getenv("STAYFOCUSED_MODEL") or None,
        max_tokens=_env_int("STAYFOCUSED_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        trace_dir=_env_path("STAYFOCUSED_TRACE_DIR"),
        admin_token=os.getenv("STAYFOCUSED_ADMIN_TOKEN") or None,
    )
