"""Operational utilities for WatchTime."""

from __future__ import annotations

import json
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque, Optional


class StructuredLogger:
    """Write JSON lines log entries for parent-facing inspection and debugging."""

    def __init__(self, *, path: Path | None = None, max_entries: int = 500) -> None:
        self.path = path
        self._entries: Deque[dict] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def log(self, event_type: str, **fields: object) -> dict:
        entry = {"timestamp": datetime.now().isoformat(), "event": event_type, **fields}
        with self._lock:
            self._entries.append(entry)
            if self.path:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        with self._lock:
            entries = list(self._entries)
        return tuple(entries[-limit:]) if limit > 0 else ()

    def events(self, event_type: str, *, limit: Optional[int] = None) -> tuple[dict, ...]:
        with self._lock:
            matching = [entry for entry in self._entries if entry["event"] == event_type]
        if limit is not None:
            matching = matching[-limit:]
        return tuple(matching)


__all__ = ["StructuredLogger"]
