"""Import/export helpers and summaries for action lists."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Sequence

from .models import Action, ActionType
from .pipeline import InvalidActionError, validate_actions

MAX_IMPORTED_ACTIONS = 1000

_TYPE_LABELS: Dict[ActionType, str] = {
    ActionType.CLICK: "click",
    ActionType.DOUBLE_CLICK: "double click",
    ActionType.RIGHT_CLICK: "right click",
    ActionType.INPUT: "input",
    ActionType.SELECT: "select",
    ActionType.SCROLL: "scroll",
    ActionType.WAIT: "wait",
    ActionType.HOVER: "hover",
}


def to_json(actions: Iterable[Action]) -> str:
    return json.dumps([action.as_record() for action in actions], indent=2, ensure_ascii=False)


def from_json(text: str) -> List[Action]:
    """Parse an exported JSON array back into validated actions."""

    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise InvalidActionError(f"Invalid JSON: {exc}") from exc

    if not isinstance(payload, list):
        raise InvalidActionError("JSON must represent an array")
    if len(payload) > MAX_IMPORTED_ACTIONS:
        raise InvalidActionError(f"Too many actions (max {MAX_IMPORTED_ACTIONS})")
    return validate_actions(payload)


def merge_action_lists(*action_lists: Any) -> List[Action]:
    merged: List[Any] = []
    for actions in action_lists:
        if isinstance(actions, list):
            merged.extend(actions)
    return validate_actions(merged)


def filter_by_type(actions: Iterable[Action], action_type: ActionType | str) -> List[Action]:
    wanted = ActionType(action_type)
    return [action for action in actions if action.type is wanted]


def get_stats(actions: Sequence[Action]) -> Dict[str, Any]:
    by_type: Dict[str, int] = {}
    for member in ActionType:
        count = sum(1 for action in actions if action.type is member)
        if count:
            by_type[member.value] = count
    return {"total": len(actions), "by_type": by_type}


def describe(actions: Sequence[Action]) -> str:
    """Human readable summary such as ``3 actions: 2 clicks, 1 wait``."""

    if not actions:
        return "No actions"

    stats = get_stats(actions)
    parts = []
    for type_name, count in stats["by_type"].items():
        label = _TYPE_LABELS[ActionType(type_name)]
        parts.append(f"{count} {label}{'s' if count > 1 else ''}")
    return f"{stats['total']} actions: {', '.join(parts)}"
