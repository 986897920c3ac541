from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class TraceEvent:
    ts: float
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


class TraceWriter:
    def __init__(self, base_dir: Path, run_id: str) -> None:
        self.base_dir = base_dir
        self.run_id = run_id

    @property
    def path(self) -> Path:
        return self.base_dir / f"{self.run_id}.jsonl"

    def write(self, event: TraceEvent) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(asdict(event), ensure_ascii=False, default=str)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(payload + "\n")
        return self.path

    def emit(self, kind: str, **data: Any) -> Path:
        return self.write(TraceEvent(ts=time.time(), kind=kind, data=data))


def new_run_id() -> str:
    stamp = time.strftime("%Y%m%dT%H%M%S", time.localtime())
    return f"run-{stamp}-{uuid.uuid4().hex[:6]}"


def emit_trace(tracer: TraceWriter | None, kind: str, **data: Any) -> None:
    if tracer is None:
        return
    tracer.emit(kind, **data)
