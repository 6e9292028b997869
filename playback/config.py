"""Configuration loader for the playback runtime."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict


DEFAULTS: Dict[str, Any] = {
    "cache_size": 500,
    "poll_interval_ms": 100,
    "wait_for_timeout_ms": 5000,
    "highlight_ms": 300,
    "action_delay_ms": 100,
    "max_retries": 0,
    "retry_delay_ms": 500,
    "navigation_timeout_ms": 30000,
    "headless": True,
    "log_root": "runs",
}

ENV_PREFIX = "PLAYBACK_"


@dataclass(slots=True)
class PlaybackConfig:
    cache_size: int = DEFAULTS["cache_size"]
    poll_interval_ms: int = DEFAULTS["poll_interval_ms"]
    wait_for_timeout_ms: int = DEFAULTS["wait_for_timeout_ms"]
    highlight_ms: int = DEFAULTS["highlight_ms"]
    action_delay_ms: int = DEFAULTS["action_delay_ms"]
    max_retries: int = DEFAULTS["max_retries"]
    retry_delay_ms: int = DEFAULTS["retry_delay_ms"]
    navigation_timeout_ms: int = DEFAULTS["navigation_timeout_ms"]
    headless: bool = DEFAULTS["headless"]
    log_root: Path = field(default_factory=lambda: Path(DEFAULTS["log_root"]))

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "PlaybackConfig":
        data = dict(DEFAULTS)
        data.update({k: v for k, v in mapping.items() if k in DEFAULTS})
        return cls(
            cache_size=int(data["cache_size"]),
            poll_interval_ms=int(data["poll_interval_ms"]),
            wait_for_timeout_ms=int(data["wait_for_timeout_ms"]),
            highlight_ms=int(data["highlight_ms"]),
            action_delay_ms=int(data["action_delay_ms"]),
            max_retries=int(data["max_retries"]),
            retry_delay_ms=int(data["retry_delay_ms"]),
            navigation_timeout_ms=int(data["navigation_timeout_ms"]),
            headless=str(data["headless"]).lower() in {"true", "1", "yes"},
            log_root=Path(data["log_root"]),
        )


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_config(config_path: Path | None = None) -> PlaybackConfig:
    """Load configuration from environment, optional TOML file, and defaults."""

    env_map: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if key.startswith(ENV_PREFIX):
            env_map[key[len(ENV_PREFIX):].lower()] = value

    path = config_path or Path("config.toml")
    file_map = _load_toml(path).get("playback", {})

    merged = {**file_map, **env_map}
    return PlaybackConfig.from_mapping(merged)


def ensure_run_directory(run_id: str, config: PlaybackConfig) -> Path:
    base = config.log_root / run_id
    base.mkdir(parents=True, exist_ok=True)
    return base
