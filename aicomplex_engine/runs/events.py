"""Append-only events stream."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from ..utils import now_utc_iso


@dataclass
class EventWriter:
    path: Path | None
    run_id: str
    records: list[dict[str, Any]] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, init=False)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        event = {
            "type": event_type,
            "run_id": self.run_id,
            "ts": now_utc_iso(),
        }
        event.update(payload)
        with self._lock:
            self.records.append(event)
            if self.path is None:
                return event
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(f"{json.dumps(event, default=str)}\n")
        return event

    def types(self) -> list[str]:
        return [str(record["type"]) for record in self.records]


def memory_events(run_id: str = "session") -> EventWriter:
    return EventWriter(None, run_id)
