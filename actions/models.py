"""Typed models for recorded and replayed browser actions."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_WAIT_MS = 300_000


class ActionType(str, Enum):
    CLICK = "click"
    INPUT = "input"
    HOVER = "hover"
    SCROLL = "scroll"
    WAIT = "wait"
    SELECT = "select"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(member.value for member in cls)


# Action types that must be resolved to an element before they can run.
TARGETED_TYPES: FrozenSet[ActionType] = frozenset(
    {
        ActionType.CLICK,
        ActionType.INPUT,
        ActionType.HOVER,
        ActionType.DOUBLE_CLICK,
        ActionType.RIGHT_CLICK,
        ActionType.SELECT,
    }
)


class Action(BaseModel):
    """One atomic automation step.

    Per-type requirements (a click needs a target, an input needs a value)
    are not enforced here; a missing target simply fails to resolve at
    playback time.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: ActionType
    selector: Optional[str] = None
    target: Optional[str] = None
    value: Optional[str] = None
    duration: Optional[int] = Field(default=None, ge=0, le=MAX_WAIT_MS)
    pixels: Optional[int] = None
    description: Optional[str] = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @property
    def descriptor(self) -> Optional[str]:
        """Target descriptor used for element resolution."""

        return self.target or self.selector

    @property
    def needs_target(self) -> bool:
        return self.type in TARGETED_TYPES

    def as_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
