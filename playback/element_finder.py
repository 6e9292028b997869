"""Multi-strategy element resolution with a bounded cache.

A target descriptor is an opaque string. ``ElementFinder.find`` tries, in
order:

 1) the cache (only while the cached node is still attached)
 2) exact visible text
 3) CSS selector (wrapping quotes stripped)
 4) aria-label
 5) XPath
 6) partial text

Every strategy fails closed: a malformed selector or expression counts as
"no match" and the next strategy is still tried.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from playwright.async_api import ElementHandle, Frame, JSHandle, Page

from .page_scripts import (
    BUTTON_TEXT_SCRIPT,
    CLOSEST_SCRIPT,
    CSS_PATH_SCRIPT,
    IS_CONNECTED_SCRIPT,
    IS_INTERACTIVE_SCRIPT,
    IS_VISIBLE_SCRIPT,
    LABEL_CONTROL_SCRIPT,
)

log = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 500
DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_WAIT_TIMEOUT_MS = 5000

INTERACTIVE_TAGS = ("button", "a", "input", "select", "textarea", "label")
INTERACTIVE_ROLES = ("button", "link", "menuitem", "tab")

_WRAPPING_QUOTES_RE = re.compile(r"^['\"]|['\"]$")

Strategy = Callable[[str], Awaitable[Optional[ElementHandle]]]
SearchRoot = Union[Page, Frame, ElementHandle]


class ElementNotFoundError(LookupError):
    """Raised by ``wait_for`` when a descriptor never resolves."""

    def __init__(self, descriptor: str, timeout_ms: int) -> None:
        super().__init__(f'Element "{descriptor}" not found within {timeout_ms}ms')
        self.descriptor = descriptor
        self.timeout_ms = timeout_ms


@dataclass(slots=True)
class CacheStats:
    size: int
    max_size: int

    def as_dict(self) -> Dict[str, int]:
        return {"size": self.size, "max_size": self.max_size}


def strip_quotes(selector: str) -> str:
    return _WRAPPING_QUOTES_RE.sub("", selector)


def xpath_literal(value: str) -> str:
    """Quote ``value`` as an XPath 1.0 string literal."""

    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


def css_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def exact_text_xpath(text: str) -> str:
    literal = xpath_literal(text)
    match = f"text()={literal} or normalize-space()={literal}"
    # innermost match only: no child element carries the same text
    return f"//body//*[{match}][not(*[normalize-space()={literal}])]"


def partial_text_xpath(text: str) -> str:
    literal = xpath_literal(text)
    match = f"contains(text(), {literal}) or contains(normalize-space(), {literal})"
    return f"//body//*[{match}][not(*[contains(normalize-space(), {literal})])]"


def _as_element(handle: Optional[JSHandle]) -> Optional[ElementHandle]:
    if handle is None:
        return None
    return handle.as_element()


class ElementFinder:
    """Resolve target descriptors to live elements of one page."""

    def __init__(
        self,
        page: Page | Frame,
        *,
        max_cache_size: int = DEFAULT_CACHE_SIZE,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        if max_cache_size < 1:
            raise ValueError("max_cache_size must be >= 1")
        self.page = page
        self.max_cache_size = max_cache_size
        self.poll_interval_ms = poll_interval_ms
        # dicts keep insertion order, which gives FIFO eviction for free
        self._cache: Dict[str, ElementHandle] = {}
        self.strategies: List[Tuple[str, Strategy]] = [
            ("text", self.find_by_text),
            ("css", self.find_by_selector),
            ("aria_label", self.find_by_aria_label),
            ("xpath", self.find_by_xpath),
            ("partial_text", self.find_by_partial_text),
        ]

    # ------------------------------------------------------------------
    # Resolution

    async def find(self, descriptor: Optional[str]) -> Optional[ElementHandle]:
        if not descriptor:
            return None

        cached = self._cache.get(descriptor)
        if cached is not None:
            if await self.is_attached(cached):
                return cached
            log.debug("Evicting detached cache entry for %r", descriptor)
            del self._cache[descriptor]
            await self._dispose(cached)

        for name, strategy in self.strategies:
            element = await strategy(descriptor)
            if element is not None:
                log.debug("Resolved %r via %s strategy", descriptor, name)
                await self._remember(descriptor, element)
                return element

        log.debug("No strategy matched %r", descriptor)
        return None

    async def find_by_text(self, text: str) -> Optional[ElementHandle]:
        return await self._query(f"xpath={exact_text_xpath(text)}")

    async def find_by_selector(self, selector: str) -> Optional[ElementHandle]:
        cleaned = strip_quotes(selector)
        if not cleaned:
            return None
        return await self._query(f"css={cleaned}")

    async def find_by_aria_label(self, label: str) -> Optional[ElementHandle]:
        return await self._query(f"css=[aria-label={css_string(label)}]")

    async def find_by_xpath(self, xpath: str) -> Optional[ElementHandle]:
        return await self._query(f"xpath={xpath}")

    async def find_by_partial_text(self, text: str) -> Optional[ElementHandle]:
        return await self._query(f"xpath={partial_text_xpath(text)}")

    async def _query(self, selector: str, root: Optional[SearchRoot] = None) -> Optional[ElementHandle]:
        try:
            scope = self.page if root is None else root
            return await scope.query_selector(selector)
        except Exception as exc:
            log.debug("Query %r failed: %s", selector, exc)
            return None

    async def _remember(self, descriptor: str, element: ElementHandle) -> None:
        if descriptor not in self._cache and len(self._cache) >= self.max_cache_size:
            oldest = next(iter(self._cache))
            await self._dispose(self._cache.pop(oldest))
        self._cache[descriptor] = element

    async def _dispose(self, element: ElementHandle) -> None:
        try:
            await element.dispose()
        except Exception as exc:
            log.debug("Could not dispose element handle: %s", exc)

    async def wait_for(self, descriptor: str, timeout_ms: int = DEFAULT_WAIT_TIMEOUT_MS) -> ElementHandle:
        """Poll ``find`` until the descriptor resolves or ``timeout_ms`` passes."""

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        while True:
            element = await self.find(descriptor)
            if element is not None:
                return element
            if loop.time() >= deadline:
                break
            await asyncio.sleep(self.poll_interval_ms / 1000)
        raise ElementNotFoundError(descriptor, timeout_ms)

    # ------------------------------------------------------------------
    # Auxiliary lookups

    async def find_all(self, selector: str) -> List[ElementHandle]:
        try:
            return await self.page.query_selector_all(f"css={strip_quotes(selector)}")
        except Exception as exc:
            log.debug("find_all(%r) failed: %s", selector, exc)
            return []

    async def find_by_label_text(self, text: str) -> Optional[ElementHandle]:
        return await self._evaluate_element(self.page, LABEL_CONTROL_SCRIPT, text)

    async def find_by_button_text(self, text: str) -> Optional[ElementHandle]:
        return await self._evaluate_element(self.page, BUTTON_TEXT_SCRIPT, text)

    async def find_by_placeholder(self, text: str) -> Optional[ElementHandle]:
        value = css_string(text)
        return await self._query(f"css=input[placeholder={value}], textarea[placeholder={value}]")

    async def find_closest_parent(self, element: ElementHandle, selector: str) -> Optional[ElementHandle]:
        if element is None:
            return None
        return await self._evaluate_element(element, CLOSEST_SCRIPT, strip_quotes(selector))

    async def find_in_container(self, container: Optional[SearchRoot], selector: str) -> Optional[ElementHandle]:
        if container is None:
            return None
        return await self._query(f"css={strip_quotes(selector)}", root=container)

    async def _evaluate_element(self, root: Any, script: str, arg: Any) -> Optional[ElementHandle]:
        try:
            return _as_element(await root.evaluate_handle(script, arg))
        except Exception as exc:
            log.debug("Element lookup script failed: %s", exc)
            return None

    # ------------------------------------------------------------------
    # Element inspection

    async def is_attached(self, element: ElementHandle) -> bool:
        try:
            return bool(await element.evaluate(IS_CONNECTED_SCRIPT))
        except Exception:
            return False

    async def is_visible(self, element: Optional[ElementHandle]) -> bool:
        if element is None:
            return False
        try:
            return bool(await element.evaluate(IS_VISIBLE_SCRIPT))
        except Exception:
            return False

    async def is_interactive(self, element: Optional[ElementHandle]) -> bool:
        if element is None:
            return False
        try:
            return bool(
                await element.evaluate(
                    IS_INTERACTIVE_SCRIPT,
                    {"tags": list(INTERACTIVE_TAGS), "roles": list(INTERACTIVE_ROLES)},
                )
            )
        except Exception:
            return False

    async def generate_selector(self, element: Optional[ElementHandle]) -> str:
        if element is None:
            return ""
        try:
            return await element.evaluate(CSS_PATH_SCRIPT) or ""
        except Exception as exc:
            log.debug("generate_selector failed: %s", exc)
            return ""

    # ------------------------------------------------------------------
    # Cache observability

    async def clear_cache(self) -> None:
        cached = list(self._cache.values())
        self._cache.clear()
        for element in cached:
            await self._dispose(element)

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(size=len(self._cache), max_size=self.max_cache_size)
