"""Normalization pipeline for action lists.

Every stage takes a sequence of actions and returns a new list; inputs are
never modified. The stages compose as::

    validate_actions -> merge_duplicates -> optimize_sequence
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Sequence

from pydantic import ValidationError

from .models import Action, ActionType

log = logging.getLogger(__name__)

MIN_WAIT_MS = 100


class InvalidActionError(ValueError):
    """Raised when an action list is structurally invalid."""


def _coerce(item: Any, index: int) -> Action:
    if isinstance(item, Action):
        return item
    if not isinstance(item, Mapping):
        raise InvalidActionError(f"Action {index} must be an object, got {type(item).__name__}")

    raw_type = item.get("type")
    if raw_type not in ActionType.values():
        raise InvalidActionError(f"Invalid action type: {raw_type}")

    try:
        return Action.model_validate(dict(item))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise InvalidActionError(f"Action {index} ({raw_type}) is invalid: {problems}") from exc


def validate_actions(items: Iterable[Any]) -> List[Action]:
    """Return typed copies of ``items`` or raise ``InvalidActionError``."""

    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise InvalidActionError("Actions must be an array")

    validated: List[Action] = []
    for index, item in enumerate(items):
        validated.append(_coerce(item, index))
    return validated


def _same_step(left: Action, right: Action) -> bool:
    return (
        left.type == right.type
        and left.descriptor == right.descriptor
        and left.value == right.value
    )


def merge_duplicates(actions: Sequence[Action]) -> List[Action]:
    """Collapse runs of identical consecutive actions to a single action."""

    merged: List[Action] = []
    for action in actions:
        if merged and _same_step(merged[-1], action):
            continue
        merged.append(action)

    dropped = len(actions) - len(merged)
    if dropped:
        log.debug("Merged %d duplicate action(s)", dropped)
    return merged


def optimize_sequence(actions: Sequence[Action]) -> List[Action]:
    """Drop redundant waits.

    A wait directly followed by another wait is discarded, so a run of waits
    keeps only its last element (durations are not summed). Waits shorter than
    ``MIN_WAIT_MS`` are dropped as negligible.
    """

    optimized: List[Action] = []
    for index, action in enumerate(actions):
        if action.type is ActionType.WAIT:
            following = actions[index + 1] if index + 1 < len(actions) else None
            if following is not None and following.type is ActionType.WAIT:
                continue
            if action.duration is not None and action.duration < MIN_WAIT_MS:
                continue
        optimized.append(action)
    return optimized


def normalize_actions(items: Iterable[Any]) -> List[Action]:
    """Run the full pipeline over raw action records."""

    validated = validate_actions(items)
    normalized = optimize_sequence(merge_duplicates(validated))
    log.debug("Normalized %d action(s) into %d", len(validated), len(normalized))
    return normalized
