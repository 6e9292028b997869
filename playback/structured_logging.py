"""Structured logging utilities for playback runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass(slots=True)
class LogPaths:
    base: Path
    events: Path


class StructuredLogger:
    """Writes one JSONL event per executed action."""

    def __init__(self, run_id: str, paths: LogPaths) -> None:
        self.run_id = run_id
        self.paths = paths
        self._step = 0
        self._events_file = paths.events.open("a", encoding="utf-8")

    def log_event(
        self,
        *,
        index: int,
        action: Dict[str, Any],
        success: bool,
        error: Optional[str] = None,
        attempts: int = 1,
        elapsed_ms: Optional[float] = None,
    ) -> int:
        self._step += 1
        payload = {
            "ts": time.time(),
            "run_id": self.run_id,
            "step": self._step,
            "index": index,
            "action": action,
            "success": success,
            "error": error,
            "attempts": attempts,
            "elapsed_ms": elapsed_ms,
        }
        self._events_file.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._events_file.flush()
        return self._step

    def close(self) -> None:
        if not self._events_file.closed:
            self._events_file.close()


def prepare_log_paths(base_dir: Path) -> LogPaths:
    base_dir.mkdir(parents=True, exist_ok=True)
    return LogPaths(base=base_dir, events=base_dir / "events.jsonl")
