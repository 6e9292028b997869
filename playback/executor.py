"""Turns normalized actions into DOM effects on a live page."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Set, Union

from playwright.async_api import ElementHandle, Frame, Page
from pydantic import ValidationError

from actions.models import Action, ActionType

from .config import PlaybackConfig
from .element_finder import ElementFinder, ElementNotFoundError, strip_quotes
from .page_scripts import (
    CLICK_SCRIPT,
    DISPATCH_MOUSE_SCRIPT,
    HIGHLIGHT_CLASS,
    HIGHLIGHT_CSS,
    HIGHLIGHT_OUTLINE,
    HOVER_CLASS,
    INJECT_STYLES_SCRIPT,
    MARK_SCRIPT,
    MARKER_CLASSES,
    PRIOR_STYLE_ATTRIBUTE,
    REMOVE_STYLES_SCRIPT,
    SCROLL_INTO_VIEW_SCRIPT,
    SCROLL_SCRIPT,
    SELECT_OPTION_SCRIPT,
    SET_VALUE_SCRIPT,
    STYLE_ELEMENT_ID,
    UNMARK_SCRIPT,
)

log = logging.getLogger(__name__)

ELEMENT_NOT_FOUND = "Element not found"
DEFAULT_WAIT_MS = 1000
DEFAULT_SCROLL_PIXELS = 400
DEFAULT_HIGHLIGHT_MS = 500

Handler = Callable[[Action, Optional[ElementHandle]], Awaitable[None]]


class ActionError(RuntimeError):
    """Raised by a handler when the resolved element cannot take the action."""


@dataclass(slots=True)
class ExecutionResult:
    success: bool
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        return payload


def _type_name(action: Any) -> Any:
    if isinstance(action, Action):
        return action.type.value
    if isinstance(action, Mapping):
        raw = action.get("type")
        return raw.value if isinstance(raw, ActionType) else raw
    return None


class PlaybackExecutor:
    """Execute one action at a time and report a structured outcome.

    The executor also owns the transient highlight state used for visual
    feedback: the set of marked elements and the pending removal task for
    each timed highlight. The inline style an element had before its first
    mark is kept on the node itself, so marking one node through several
    handles still restores the original style.

    Timed highlights expire on their own. The hover marker stays on an
    element until ``cleanup()``.
    """

    def __init__(
        self,
        page: Page | Frame,
        finder: Optional[ElementFinder] = None,
        *,
        config: Optional[PlaybackConfig] = None,
    ) -> None:
        self.page = page
        self.config = config or PlaybackConfig()
        self.finder = finder or ElementFinder(
            page,
            max_cache_size=self.config.cache_size,
            poll_interval_ms=self.config.poll_interval_ms,
        )
        self._highlighted: Set[ElementHandle] = set()
        self._hovered: Set[ElementHandle] = set()
        self._timers: Dict[ElementHandle, asyncio.Task] = {}
        self._styles_injected = False
        self._handlers: Dict[str, Handler] = {
            ActionType.CLICK.value: self._click,
            ActionType.INPUT.value: self._input,
            ActionType.SELECT.value: self._select,
            ActionType.HOVER.value: self._hover,
            ActionType.DOUBLE_CLICK.value: self._double_click,
            ActionType.RIGHT_CLICK.value: self._right_click,
            ActionType.SCROLL.value: self._scroll,
            ActionType.WAIT.value: self._wait,
        }

    @property
    def highlighted(self) -> Set[ElementHandle]:
        return set(self._highlighted)

    async def execute(self, action: Union[Action, Mapping[str, Any]]) -> ExecutionResult:
        type_name = _type_name(action)
        handler = self._handlers.get(type_name) if isinstance(type_name, str) else None
        if handler is None:
            return ExecutionResult(False, f"Unsupported action type: {type_name}")

        if isinstance(action, Action):
            typed = action
        else:
            try:
                typed = Action.model_validate(dict(action))
            except ValidationError as exc:
                first = exc.errors()[0]
                field_name = ".".join(str(part) for part in first["loc"])
                return ExecutionResult(False, f"Invalid action field {field_name}: {first['msg']}")

        element: Optional[ElementHandle] = None
        if typed.needs_target:
            element = await self._resolve(typed)
            if element is None:
                log.warning("%s target %r could not be resolved", type_name, typed.descriptor)
                return ExecutionResult(False, ELEMENT_NOT_FOUND)
            await self._scroll_into_view(element)
            if self.config.highlight_ms > 0:
                await self._mark_highlight(element, self.config.highlight_ms)

        try:
            await handler(typed, element)
        except Exception as exc:
            log.warning("%s action failed: %s", type_name, exc)
            return ExecutionResult(False, str(exc) or exc.__class__.__name__)
        return ExecutionResult(True)

    async def _resolve(self, action: Action) -> Optional[ElementHandle]:
        descriptor = action.descriptor
        if not descriptor:
            return None

        element = await self.finder.find(descriptor)
        if element is None and action.type is ActionType.INPUT:
            element = await self.finder.find_by_placeholder(descriptor)
            if element is None:
                element = await self.finder.find_by_label_text(descriptor)
        if element is None and self.config.wait_for_timeout_ms > 0:
            try:
                element = await self.finder.wait_for(descriptor, self.config.wait_for_timeout_ms)
            except ElementNotFoundError as exc:
                log.debug("%s", exc)
                return None
        return element

    async def _scroll_into_view(self, element: ElementHandle) -> None:
        try:
            await element.evaluate(SCROLL_INTO_VIEW_SCRIPT)
        except Exception as exc:
            log.debug("scrollIntoView failed: %s", exc)

    # ------------------------------------------------------------------
    # Action handlers

    async def _click(self, action: Action, element: Optional[ElementHandle]) -> None:
        await element.evaluate(CLICK_SCRIPT)

    async def _input(self, action: Action, element: Optional[ElementHandle]) -> None:
        await element.evaluate(SET_VALUE_SCRIPT, action.value or "")

    async def _select(self, action: Action, element: Optional[ElementHandle]) -> None:
        if not await element.evaluate(SELECT_OPTION_SCRIPT, action.value or ""):
            raise ActionError(f"Select element not found: {action.descriptor}")

    async def _hover(self, action: Action, element: Optional[ElementHandle]) -> None:
        await self._ensure_styles()
        await self._mark(element, HOVER_CLASS, None)
        self._highlighted.add(element)
        self._hovered.add(element)
        await self._dispatch(element, ("mouseenter", "mouseover"))

    async def _double_click(self, action: Action, element: Optional[ElementHandle]) -> None:
        await self._dispatch(element, ("click", "dblclick"))

    async def _right_click(self, action: Action, element: Optional[ElementHandle]) -> None:
        await self._dispatch(element, ("mousedown", "contextmenu"), button=2)

    async def _scroll(self, action: Action, element: Optional[ElementHandle]) -> None:
        pixels = action.pixels if action.pixels is not None else DEFAULT_SCROLL_PIXELS
        container = strip_quotes(action.descriptor) if action.descriptor else None
        scrolled = await self.page.evaluate(SCROLL_SCRIPT, {"selector": container, "pixels": pixels})
        log.debug("Scrolled %s by %d px", scrolled, pixels)

    async def _wait(self, action: Action, element: Optional[ElementHandle]) -> None:
        duration = action.duration if action.duration is not None else DEFAULT_WAIT_MS
        await asyncio.sleep(duration / 1000)

    async def _dispatch(self, element: ElementHandle, events: Iterable[str], *, button: int = 0) -> None:
        await element.evaluate(DISPATCH_MOUSE_SCRIPT, {"events": list(events), "button": button})

    # ------------------------------------------------------------------
    # Highlighting

    async def highlight(self, descriptor: str, duration_ms: int = DEFAULT_HIGHLIGHT_MS) -> bool:
        """Mark the element for ``duration_ms``. Unresolvable targets are ignored."""

        try:
            element = await self.finder.find(descriptor)
        except Exception as exc:
            log.debug("highlight lookup failed for %r: %s", descriptor, exc)
            return False
        if element is None:
            return False
        return await self._mark_highlight(element, duration_ms)

    async def _mark_highlight(self, element: ElementHandle, duration_ms: int) -> bool:
        try:
            await self._ensure_styles()
            await self._mark(element, HIGHLIGHT_CLASS, HIGHLIGHT_OUTLINE)
        except Exception as exc:
            log.debug("Could not highlight element: %s", exc)
            return False

        self._highlighted.add(element)
        pending = self._timers.pop(element, None)
        if pending is not None:
            pending.cancel()
        self._timers[element] = asyncio.create_task(self._expire_highlight(element, duration_ms))
        return True

    async def _expire_highlight(self, element: ElementHandle, duration_ms: int) -> None:
        await asyncio.sleep(duration_ms / 1000)
        self._timers.pop(element, None)
        await self._unmark(element, (HIGHLIGHT_CLASS,))
        if element not in self._hovered:
            self._highlighted.discard(element)

    async def _mark(self, element: ElementHandle, class_name: str, outline: Optional[str]) -> None:
        await element.evaluate(
            MARK_SCRIPT,
            {"className": class_name, "outline": outline, "attribute": PRIOR_STYLE_ATTRIBUTE},
        )

    async def _unmark(self, element: ElementHandle, classes: Iterable[str]) -> None:
        try:
            await element.evaluate(
                UNMARK_SCRIPT,
                {
                    "classNames": list(classes),
                    "markers": list(MARKER_CLASSES),
                    "attribute": PRIOR_STYLE_ATTRIBUTE,
                },
            )
        except Exception as exc:
            log.debug("Could not restore element state: %s", exc)

    async def _ensure_styles(self) -> None:
        if self._styles_injected:
            return
        await self.page.evaluate(INJECT_STYLES_SCRIPT, {"id": STYLE_ELEMENT_ID, "css": HIGHLIGHT_CSS})
        self._styles_injected = True

    async def cleanup(self) -> None:
        """Remove every highlight and hover marker, restore inline styles and drop the style sheet."""

        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

        for element in list(self._highlighted):
            await self._unmark(element, MARKER_CLASSES)
        self._highlighted.clear()
        self._hovered.clear()

        if self._styles_injected:
            try:
                await self.page.evaluate(REMOVE_STYLES_SCRIPT, STYLE_ELEMENT_ID)
            except Exception as exc:
                log.debug("Could not remove highlight styles: %s", exc)
            self._styles_injected = False
