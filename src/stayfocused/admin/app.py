from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from stayfocused.admin.trace_parser import parse_trace_file
from stayfocused.backends import BackendError, get_backend
from stayfocused.config import FocusConfig, load_config
from stayfocused.core.types import FocusOptions, ProtocolViolation
from stayfocused.runtime import controller
from stayfocused.runtime.state_store import load_state, state_to_payload


class RunRequest(BaseModel):
    backend: str | None = None
    model: str | None = None
    source_path: str | None = None
    window_capacity: int | None = Field(default=None, gt=0)


def _list_runs(trace_dir: Path | None) -> list[dict[str, Any]]:
    if trace_dir is None or not trace_dir.exists():
        return []
    runs = [
        {"run_id": path.stem, "file_name": path.name, "updated_ts": path.stat().st_mtime}
        for path in trace_dir.glob("*.jsonl")
    ]
    runs.sort(key=lambda item: item["updated_ts"], reverse=True)
    return runs


def create_app(
    state_path: Path | None = None,
    trace_dir: Path | None = None,
    config: FocusConfig | None = None,
) -> FastAPI:
    settings = config or load_config()
    resolved_state = state_path or settings.state_path
    resolved_traces = trace_dir or settings.trace_dir

    app = FastAPI()
    app.state.state_path = resolved_state
    app.state.trace_dir = resolved_traces

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        token = settings.admin_token
        if token and request.headers.get("X-Admin-Token") != token:
            return JSONResponse(status_code=401, content={"detail": "Invalid admin token"})
        return await call_next(request)

    def _require_state_path() -> Path:
        if resolved_state is None:
            raise HTTPException(status_code=500, detail="state path is not configured")
        return resolved_state

    @app.get("/api/state")
    async def get_state() -> dict[str, Any]:
        path = _require_state_path()
        try:
            state = load_state(path)
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail="no saved state") from exc
        except ValueError as exc:
            raise HTTPException(status_code=500, detail=f"state is unreadable: {exc}") from exc
        return {"state": state_to_payload(state), "context": state.render_context()}

    @app.get("/api/runs")
    async def list_runs() -> dict[str, Any]:
        return {"runs": _list_runs(resolved_traces)}

    @app.get("/api/runs/{run_id}")
    async def get_run(run_id: str) -> dict[str, Any]:
        if resolved_traces is None:
            raise HTTPException(status_code=404, detail="Trace file not found")
        trace_path = resolved_traces / f"{run_id}.jsonl"
        if trace_path.parent != resolved_traces or not trace_path.exists():
            raise HTTPException(status_code=404, detail="Trace file not found")
        return {"run_id": run_id, "file_name": trace_path.name, **parse_trace_file(trace_path)}

    @app.post("/api/run")
    def run_session(payload: RunRequest) -> dict[str, Any]:
        path = _require_state_path()
        try:
            backend = get_backend(payload.backend or settings.backend)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        options = FocusOptions()
        if payload.source_path:
            options.source_path = payload.source_path
        if payload.window_capacity is not None:
            options.window_capacity = payload.window_capacity
        try:
            result = controller.run_session(
                path,
                backend,
                options=options,
                model=payload.model or settings.model,
                max_tokens=settings.max_tokens,
                trace_dir=resolved_traces,
            )
        except FileNotFoundError as exc:
            raise HTTPException(status_code=400, detail=f"histfile not found: {exc.filename}") from exc
        except (BackendError, ProtocolViolation) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {
            "rounds": result.loop.rounds,
            "stop_reason": result.loop.stop_reason,
            "budget_exhausted": result.loop.budget_exhausted,
            "final_text": result.loop.final_text,
            "state": state_to_payload(result.state),
            "run_id": result.trace_path.stem if result.trace_path is not None else None,
        }

    return app
