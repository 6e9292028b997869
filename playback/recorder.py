"""Record user interactions on a page as actions."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from playwright.async_api import Page
from pydantic import ValidationError

from actions.models import Action, ActionType
from actions.pipeline import normalize_actions

from .page_scripts import recorder_script

log = logging.getLogger(__name__)

BINDING_NAME = "__playbackRecordAction"


class ActionRecorder:
    """Capture clicks, typing and selections through a page binding.

    Consecutive keystrokes into the same field are coalesced into a single
    ``input`` action holding the latest value.
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self.is_recording = False
        self.started_at: Optional[float] = None
        self._actions: List[Action] = []
        self._installed = False

    @property
    def actions(self) -> List[Action]:
        return list(self._actions)

    async def start(self) -> None:
        if self.is_recording:
            log.warning("Already recording")
            return
        if not self._installed:
            script = recorder_script(BINDING_NAME)
            await self.page.expose_binding(BINDING_NAME, self._on_event)
            await self.page.add_init_script(script=script)
            await self.page.evaluate(script)
            self._installed = True
        self._actions = []
        self.started_at = time.time()
        self.is_recording = True
        log.info("Recording started")

    def stop(self, *, normalize: bool = True) -> List[Action]:
        if not self.is_recording:
            log.warning("Not recording")
            return self.actions
        self.is_recording = False
        log.info("Recording stopped with %d action(s)", len(self._actions))
        if normalize:
            return normalize_actions(self._actions)
        return self.actions

    def clear(self) -> None:
        self._actions = []

    def status(self) -> Dict[str, Any]:
        return {
            "is_recording": self.is_recording,
            "action_count": len(self._actions),
            "started_at": self.started_at,
        }

    def _on_event(self, source: Any, payload: Dict[str, Any]) -> None:
        if not self.is_recording:
            return
        try:
            action = Action.model_validate(payload)
        except ValidationError as exc:
            log.warning("Ignoring malformed recorded event %r: %s", payload, exc)
            return

        if (
            action.type is ActionType.INPUT
            and self._actions
            and self._actions[-1].type is ActionType.INPUT
            and self._actions[-1].descriptor == action.descriptor
        ):
            self._actions[-1] = action
            return
        self._actions.append(action)
