"""Sequential playback of action lists with retries, pausing and progress."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from actions.models import Action
from actions.pipeline import normalize_actions, validate_actions

from .config import PlaybackConfig
from .executor import ExecutionResult, PlaybackExecutor
from .structured_logging import StructuredLogger

log = logging.getLogger(__name__)


@dataclass(slots=True)
class PlaybackProgress:
    current: int
    total: int
    status: str
    completed: int
    failed: int


@dataclass(slots=True)
class PlaybackReport:
    success: bool
    completed: int
    failed: int
    total: int
    stopped: bool = False
    results: List[ExecutionResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    duration_ms: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
            "stopped": self.stopped,
            "results": [result.as_dict() for result in self.results],
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
        }


ProgressListener = Callable[[PlaybackProgress], None]


class PlaybackSession:
    """Drive a ``PlaybackExecutor`` through a whole action list.

    Actions run strictly one after another. ``stop()`` and ``pause()`` take
    effect between actions; an action that already started always finishes.
    """

    def __init__(
        self,
        executor: PlaybackExecutor,
        *,
        config: Optional[PlaybackConfig] = None,
        event_log: Optional[StructuredLogger] = None,
    ) -> None:
        self.executor = executor
        self.config = config or executor.config
        self.event_log = event_log
        self.status = "idle"
        self._listeners: Set[ProgressListener] = set()
        self._stop_requested = False
        self._resume = asyncio.Event()
        self._resume.set()
        self._current = 0
        self._total = 0
        self._completed = 0
        self._failed = 0

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._listeners.add(listener)

    def remove_progress_listener(self, listener: ProgressListener) -> None:
        self._listeners.discard(listener)

    def progress(self) -> PlaybackProgress:
        return PlaybackProgress(
            current=self._current,
            total=self._total,
            status=self.status,
            completed=self._completed,
            failed=self._failed,
        )

    def stop(self) -> None:
        self._stop_requested = True
        self._resume.set()

    def pause(self) -> None:
        if self.status == "running":
            self.status = "paused"
            self._resume.clear()
            self._notify()

    def resume(self) -> None:
        if self.status == "paused":
            self.status = "running"
            self._resume.set()
            self._notify()

    async def play(self, actions: Iterable[Any], *, normalize: bool = True) -> PlaybackReport:
        if self.status in {"running", "paused"}:
            raise RuntimeError("Playback already in progress")

        steps = normalize_actions(actions) if normalize else validate_actions(actions)
        self.status = "running"
        self._stop_requested = False
        self._resume.set()
        self._current = 0
        self._total = len(steps)
        self._completed = 0
        self._failed = 0

        report = PlaybackReport(success=False, completed=0, failed=0, total=len(steps))
        started = time.monotonic()
        log.info("Starting playback of %d action(s)", len(steps))
        try:
            for index, action in enumerate(steps):
                await self._resume.wait()
                if self._stop_requested:
                    report.stopped = True
                    log.info("Playback stopped before action %d", index)
                    break

                self._current = index
                result, attempts, elapsed_ms = await self._run_with_retry(action)
                report.results.append(result)
                if result.success:
                    self._completed += 1
                else:
                    self._failed += 1
                    report.errors.append(
                        {
                            "index": index,
                            "action": action.as_record(),
                            "error": result.error,
                            "attempts": attempts,
                        }
                    )
                if self.event_log is not None:
                    self.event_log.log_event(
                        index=index,
                        action=action.as_record(),
                        success=result.success,
                        error=result.error,
                        attempts=attempts,
                        elapsed_ms=elapsed_ms,
                    )
                self._notify()

                if self.config.action_delay_ms > 0 and index < len(steps) - 1:
                    await asyncio.sleep(self.config.action_delay_ms / 1000)
        finally:
            self.status = "stopped" if report.stopped else "complete"
            report.completed = self._completed
            report.failed = self._failed
            report.success = self._failed == 0 and not report.stopped
            report.duration_ms = (time.monotonic() - started) * 1000
            self._notify()
            log.info(
                "Playback finished: %d completed, %d failed, %d total",
                report.completed,
                report.failed,
                report.total,
            )
        return report

    async def _run_with_retry(self, action: Action) -> tuple[ExecutionResult, int, float]:
        started = time.monotonic()
        attempts = 0
        result = ExecutionResult(False, "not executed")
        for attempt in range(self.config.max_retries + 1):
            attempts += 1
            result = await self.executor.execute(action)
            if result.success:
                break
            if attempt < self.config.max_retries:
                delay_ms = self.config.retry_delay_ms * (2 ** attempt)
                log.debug("Retrying %s in %d ms: %s", action.type.value, delay_ms, result.error)
                await asyncio.sleep(delay_ms / 1000)
        return result, attempts, (time.monotonic() - started) * 1000

    def _notify(self) -> None:
        snapshot = self.progress()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                log.exception("Progress listener failed")
