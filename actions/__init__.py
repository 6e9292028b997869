"""Action data model and normalization pipeline."""

from .models import MAX_WAIT_MS, TARGETED_TYPES, Action, ActionType
from .pipeline import (
    InvalidActionError,
    merge_duplicates,
    normalize_actions,
    optimize_sequence,
    validate_actions,
)
from .serialization import describe, filter_by_type, from_json, get_stats, merge_action_lists, to_json

__all__ = [
    "Action",
    "ActionType",
    "InvalidActionError",
    "MAX_WAIT_MS",
    "TARGETED_TYPES",
    "describe",
    "filter_by_type",
    "from_json",
    "get_stats",
    "merge_action_lists",
    "merge_duplicates",
    "normalize_actions",
    "optimize_sequence",
    "to_json",
    "validate_actions",
]
