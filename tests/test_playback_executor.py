import asyncio

import pytest

from actions.models import Action
from playback.config import PlaybackConfig
from playback.element_finder import ElementNotFoundError
from playback.executor import PlaybackExecutor
from playback import executor as executor_module
from playback.page_scripts import (
    CLICK_SCRIPT,
    DISPATCH_MOUSE_SCRIPT,
    HIGHLIGHT_CLASS,
    HIGHLIGHT_OUTLINE,
    HOVER_CLASS,
    INJECT_STYLES_SCRIPT,
    MARK_SCRIPT,
    PRIOR_STYLE_ATTRIBUTE,
    REMOVE_STYLES_SCRIPT,
    SCROLL_INTO_VIEW_SCRIPT,
    SCROLL_SCRIPT,
    SELECT_OPTION_SCRIPT,
    SET_VALUE_SCRIPT,
    UNMARK_SCRIPT,
)

UNMARK_HIGHLIGHT = {
    "classNames": [HIGHLIGHT_CLASS],
    "markers": [HIGHLIGHT_CLASS, HOVER_CLASS],
    "attribute": PRIOR_STYLE_ATTRIBUTE,
}
UNMARK_ALL = dict(UNMARK_HIGHLIGHT, classNames=[HIGHLIGHT_CLASS, HOVER_CLASS])


class FakeElement:
    def __init__(self, name: str, *, results=None, errors=None) -> None:
        self.name = name
        self.results = dict(results or {})
        self.errors = dict(errors or {})
        self.calls = []

    async def evaluate(self, script, arg=None):
        self.calls.append((script, arg))
        if script in self.errors:
            raise self.errors[script]
        return self.results.get(script)

    def scripts(self):
        return [script for script, _ in self.calls]

    def args_for(self, script):
        return [arg for called, arg in self.calls if called == script]


class FakeFinder:
    def __init__(self, elements=None, *, placeholders=None, labels=None, late=None) -> None:
        self.elements = dict(elements or {})
        self.placeholders = dict(placeholders or {})
        self.labels = dict(labels or {})
        self.late = dict(late or {})
        self.lookups = []

    async def find(self, descriptor):
        self.lookups.append(("find", descriptor))
        return self.elements.get(descriptor)

    async def find_by_placeholder(self, text):
        self.lookups.append(("placeholder", text))
        return self.placeholders.get(text)

    async def find_by_label_text(self, text):
        self.lookups.append(("label", text))
        return self.labels.get(text)

    async def wait_for(self, descriptor, timeout_ms):
        self.lookups.append(("wait_for", descriptor, timeout_ms))
        if descriptor in self.late:
            return self.late[descriptor]
        raise ElementNotFoundError(descriptor, timeout_ms)


class FakePage:
    def __init__(self) -> None:
        self.evaluations = []

    async def evaluate(self, script, arg=None):
        self.evaluations.append((script, arg))
        if script == SCROLL_SCRIPT:
            return "container" if arg["selector"] else "window"
        return None

    def scripts(self):
        return [script for script, _ in self.evaluations]


def make_executor(elements=None, finder=None, **overrides):
    settings = {"highlight_ms": 0, "wait_for_timeout_ms": 0}
    settings.update(overrides)
    page = FakePage()
    finder = finder or FakeFinder(elements)
    executor = PlaybackExecutor(page, finder, config=PlaybackConfig(**settings))
    return executor, page, finder


def test_missing_element_reports_not_found():
    executor, _, finder = make_executor()

    result = asyncio.run(executor.execute({"type": "click", "selector": "#missing"}))

    assert result.as_dict() == {"success": False, "error": "Element not found"}
    assert finder.lookups == [("find", "#missing")]


def test_unsupported_type_is_reported():
    executor, _, _ = make_executor()

    result = asyncio.run(executor.execute({"type": "bogus"}))

    assert not result.success
    assert result.error == "Unsupported action type: bogus"


def test_missing_type_is_reported():
    executor, _, _ = make_executor()

    result = asyncio.run(executor.execute({"target": "Go"}))

    assert result.error == "Unsupported action type: None"


def test_invalid_field_is_reported():
    executor, _, _ = make_executor()

    result = asyncio.run(executor.execute({"type": "wait", "duration": -5}))

    assert not result.success
    assert result.error.startswith("Invalid action field duration:")


def test_click_scrolls_target_into_view_first():
    button = FakeElement("submit")
    executor, _, finder = make_executor({"Submit": button})

    result = asyncio.run(executor.execute({"type": "click", "selector": "#old", "target": "Submit"}))

    assert result.success
    assert result.error is None
    assert finder.lookups == [("find", "Submit")]
    assert button.scripts() == [SCROLL_INTO_VIEW_SCRIPT, CLICK_SCRIPT]


def test_failed_scroll_into_view_does_not_block_action():
    button = FakeElement("submit", errors={SCROLL_INTO_VIEW_SCRIPT: RuntimeError("not an element")})
    executor, _, _ = make_executor({"Submit": button})

    result = asyncio.run(executor.execute({"type": "click", "target": "Submit"}))

    assert result.success
    assert button.scripts()[-1] == CLICK_SCRIPT


def test_input_and_select_set_values():
    field = FakeElement("field")
    country = FakeElement("country", results={SELECT_OPTION_SCRIPT: True})
    executor, _, _ = make_executor({"#q": field, "#country": country})

    async def scenario():
        return [
            await executor.execute(Action(type="input", target="#q", value="shoes")),
            await executor.execute(Action(type="input", target="#q")),
            await executor.execute(Action(type="select", target="#country", value="JP")),
        ]

    results = asyncio.run(scenario())

    assert all(result.success for result in results)
    assert field.args_for(SET_VALUE_SCRIPT) == ["shoes", ""]
    assert country.args_for(SELECT_OPTION_SCRIPT) == ["JP"]


def test_select_rejects_non_select_elements():
    label = FakeElement("span", results={SELECT_OPTION_SCRIPT: False})
    executor, _, _ = make_executor({"Country": label})

    result = asyncio.run(executor.execute({"type": "select", "target": "Country", "value": "JP"}))

    assert result.as_dict() == {"success": False, "error": "Select element not found: Country"}


def test_input_falls_back_to_placeholder_then_label():
    search = FakeElement("search")
    email = FakeElement("email")
    finder = FakeFinder(placeholders={"Search": search}, labels={"Email": email})
    executor, _, _ = make_executor(finder=finder)

    async def scenario():
        return [
            await executor.execute({"type": "input", "target": "Search", "value": "shoes"}),
            await executor.execute({"type": "input", "target": "Email", "value": "a@example.com"}),
            await executor.execute({"type": "input", "target": "Phone", "value": "123"}),
        ]

    results = asyncio.run(scenario())

    assert [result.success for result in results] == [True, True, False]
    assert search.args_for(SET_VALUE_SCRIPT) == ["shoes"]
    assert email.args_for(SET_VALUE_SCRIPT) == ["a@example.com"]
    assert finder.lookups == [
        ("find", "Search"),
        ("placeholder", "Search"),
        ("find", "Email"),
        ("placeholder", "Email"),
        ("label", "Email"),
        ("find", "Phone"),
        ("placeholder", "Phone"),
        ("label", "Phone"),
    ]


def test_click_does_not_use_input_fallbacks():
    finder = FakeFinder(placeholders={"Search": FakeElement("search")})
    executor, _, _ = make_executor(finder=finder)

    result = asyncio.run(executor.execute({"type": "click", "target": "Search"}))

    assert result.error == "Element not found"
    assert finder.lookups == [("find", "Search")]


def test_targets_are_awaited_with_configured_timeout():
    late = FakeElement("late")
    finder = FakeFinder(late={"#late": late})
    executor, _, _ = make_executor(finder=finder, wait_for_timeout_ms=750)

    async def scenario():
        return [
            await executor.execute({"type": "click", "target": "#late"}),
            await executor.execute({"type": "click", "target": "#never"}),
        ]

    appeared, missing = asyncio.run(scenario())

    assert appeared.success
    assert late.scripts()[-1] == CLICK_SCRIPT
    assert missing.as_dict() == {"success": False, "error": "Element not found"}
    assert ("wait_for", "#late", 750) in finder.lookups
    assert ("wait_for", "#never", 750) in finder.lookups


def test_double_and_right_click_dispatch_mouse_events():
    row = FakeElement("row")
    executor, _, _ = make_executor({"Row": row})

    async def scenario():
        await executor.execute({"type": "double_click", "target": "Row"})
        await executor.execute({"type": "right_click", "target": "Row"})

    asyncio.run(scenario())

    assert row.args_for(DISPATCH_MOUSE_SCRIPT) == [
        {"events": ["click", "dblclick"], "button": 0},
        {"events": ["mousedown", "contextmenu"], "button": 2},
    ]


def test_hover_marks_element_and_injects_styles_once():
    menu = FakeElement("menu")
    executor, page, _ = make_executor({"Menu": menu})

    async def scenario():
        await executor.execute({"type": "hover", "target": "Menu"})
        await executor.execute({"type": "hover", "target": "Menu"})

    asyncio.run(scenario())

    assert page.scripts().count(INJECT_STYLES_SCRIPT) == 1
    assert menu.args_for(MARK_SCRIPT)[0] == {
        "className": HOVER_CLASS,
        "outline": None,
        "attribute": PRIOR_STYLE_ATTRIBUTE,
    }
    assert {"events": ["mouseenter", "mouseover"], "button": 0} in menu.args_for(DISPATCH_MOUSE_SCRIPT)
    assert executor.highlighted == {menu}


def test_hover_marker_outlives_highlight_until_cleanup():
    menu = FakeElement("menu")
    executor, _, _ = make_executor({"Menu": menu}, highlight_ms=10)

    async def scenario():
        await executor.execute({"type": "hover", "target": "Menu"})
        await asyncio.sleep(0.1)
        after_expiry = executor.highlighted
        await executor.cleanup()
        return after_expiry

    after_expiry = asyncio.run(scenario())

    assert after_expiry == {menu}
    assert menu.args_for(UNMARK_SCRIPT) == [UNMARK_HIGHLIGHT, UNMARK_ALL]
    assert executor.highlighted == set()


def test_scroll_does_not_resolve_elements():
    executor, page, finder = make_executor()

    async def scenario():
        return [
            await executor.execute({"type": "scroll", "pixels": 250}),
            await executor.execute({"type": "scroll", "selector": "'#feed'"}),
        ]

    results = asyncio.run(scenario())

    assert all(result.success for result in results)
    assert finder.lookups == []
    assert [arg for script, arg in page.evaluations if script == SCROLL_SCRIPT] == [
        {"selector": None, "pixels": 250},
        {"selector": "#feed", "pixels": 400},
    ]


def test_wait_sleeps_for_duration(monkeypatch):
    executor, _, _ = make_executor()
    sleeps = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay):
        sleeps.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(executor_module.asyncio, "sleep", fake_sleep)

    async def scenario():
        await executor.execute({"type": "wait", "duration": 1500})
        await executor.execute({"type": "wait"})

    asyncio.run(scenario())

    assert sleeps == [1.5, 1.0]


def test_handler_failure_becomes_result():
    broken = FakeElement("broken", errors={CLICK_SCRIPT: RuntimeError("Element is not attached to the DOM")})
    executor, _, _ = make_executor({"#broken": broken})

    result = asyncio.run(executor.execute({"type": "click", "target": "#broken"}))

    assert result.as_dict() == {"success": False, "error": "Element is not attached to the DOM"}


def test_execute_highlights_targets_when_enabled():
    button = FakeElement("go")
    executor, _, _ = make_executor({"Go": button}, highlight_ms=10_000)

    async def scenario():
        result = await executor.execute({"type": "click", "target": "Go"})
        highlighted = executor.highlighted
        await executor.cleanup()
        return result, highlighted

    result, highlighted = asyncio.run(scenario())

    assert result.success
    assert highlighted == {button}
    assert button.scripts()[:3] == [SCROLL_INTO_VIEW_SCRIPT, MARK_SCRIPT, CLICK_SCRIPT]


def test_highlight_unresolvable_target_is_ignored():
    executor, page, _ = make_executor()

    assert asyncio.run(executor.highlight("#nowhere", 100)) is False
    assert page.evaluations == []


def test_highlight_expires_after_duration():
    card = FakeElement("card")
    executor, _, _ = make_executor({"Card": card})

    async def scenario():
        assert await executor.highlight("Card", 10)
        assert executor.highlighted == {card}
        await asyncio.sleep(0.1)
        return executor.highlighted

    assert asyncio.run(scenario()) == set()
    assert card.args_for(MARK_SCRIPT) == [
        {"className": HIGHLIGHT_CLASS, "outline": HIGHLIGHT_OUTLINE, "attribute": PRIOR_STYLE_ATTRIBUTE}
    ]
    assert card.args_for(UNMARK_SCRIPT) == [UNMARK_HIGHLIGHT]


def test_rehighlight_replaces_pending_timer():
    card = FakeElement("card")
    executor, _, _ = make_executor({"Card": card})

    async def scenario():
        await executor.highlight("Card", 10_000)
        first = executor._timers[card]
        await executor.highlight("Card", 10_000)
        second = executor._timers[card]
        await asyncio.sleep(0)
        cancelled = first.cancelled()
        await executor.cleanup()
        return first is second, cancelled

    same, cancelled = asyncio.run(scenario())

    assert not same
    assert cancelled


def test_cleanup_restores_state_and_cancels_timers():
    card = FakeElement("card")
    menu = FakeElement("menu")
    executor, page, _ = make_executor({"Card": card, "Menu": menu})

    async def scenario():
        await executor.highlight("Card", 60_000)
        await executor.execute({"type": "hover", "target": "Menu"})
        timers = list(executor._timers.values())
        await executor.cleanup()
        return timers

    timers = asyncio.run(scenario())

    assert timers and all(task.cancelled() for task in timers)
    assert executor.highlighted == set()
    assert executor._timers == {}
    assert card.args_for(UNMARK_SCRIPT) == [UNMARK_ALL]
    assert menu.args_for(UNMARK_SCRIPT) == [UNMARK_ALL]
    assert page.scripts()[-1] == REMOVE_STYLES_SCRIPT


def test_cleanup_without_highlights_is_a_no_op():
    executor, page, _ = make_executor()

    asyncio.run(executor.cleanup())

    assert page.evaluations == []


@pytest.mark.parametrize("descriptor", ["", None])
def test_targeted_action_without_descriptor_fails(descriptor):
    executor, _, finder = make_executor(wait_for_timeout_ms=5000)

    result = asyncio.run(executor.execute({"type": "click", "target": descriptor}))

    assert result.error == "Element not found"
    assert finder.lookups == []
