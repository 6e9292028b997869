from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, List

from flask import Flask, jsonify, request
from playwright.async_api import async_playwright
from werkzeug.exceptions import HTTPException

from actions.pipeline import InvalidActionError, normalize_actions, validate_actions
from actions.serialization import describe, get_stats

from .config import PlaybackConfig, ensure_run_directory, load_config
from .executor import PlaybackExecutor
from .session import PlaybackSession
from .structured_logging import StructuredLogger, prepare_log_paths

app = Flask(__name__)
logging.basicConfig(level=logging.INFO)
log = logging.getLogger("playback")

CONFIG = load_config()
LOOP = asyncio.new_event_loop()


def _run(coro):
    return LOOP.run_until_complete(coro)


@app.errorhandler(Exception)
def handle_exception(error):  # pragma: no cover - defensive handler
    if isinstance(error, HTTPException):
        return error
    correlation_id = str(uuid.uuid4())[:8]
    log.exception("[%s] Uncaught exception: %s", correlation_id, error)
    return jsonify({"error": f"Internal failure - {error}", "correlation_id": correlation_id}), 500


async def run_playback(
    url: str,
    actions: List[Any],
    *,
    config: PlaybackConfig,
    normalize: bool = True,
) -> Dict[str, Any]:
    """Open ``url`` in a fresh browser and replay ``actions`` against it."""

    run_id = uuid.uuid4().hex[:12]
    event_log = StructuredLogger(run_id, prepare_log_paths(ensure_run_directory(run_id, config)))
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=config.headless)
            try:
                page = await browser.new_page()
                await page.goto(url, timeout=config.navigation_timeout_ms)
                executor = PlaybackExecutor(page, config=config)
                session = PlaybackSession(executor, config=config, event_log=event_log)
                try:
                    report = await session.play(actions, normalize=normalize)
                finally:
                    await executor.cleanup()
            finally:
                await browser.close()
    finally:
        event_log.close()
    return {"run_id": run_id, **report.as_dict()}


def _json_body() -> Dict[str, Any]:
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidActionError("Request body must be a JSON object")
    return data


def _actions_from_request(data: Dict[str, Any]) -> List[Any]:
    actions = data.get("actions")
    if not isinstance(actions, list):
        raise InvalidActionError("Actions must be an array")
    return actions


@app.post("/actions/normalize")
def normalize():
    try:
        actions = normalize_actions(_actions_from_request(_json_body()))
    except InvalidActionError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(
        {
            "actions": [action.as_record() for action in actions],
            "stats": get_stats(actions),
            "description": describe(actions),
        }
    )


@app.post("/playback")
def playback():
    try:
        data = _json_body()
    except InvalidActionError as exc:
        return jsonify({"error": str(exc)}), 400
    url = str(data.get("url", "")).strip()
    if not url:
        return jsonify({"error": "url empty"}), 400

    should_normalize = bool(data.get("normalize", True))
    try:
        raw_actions = _actions_from_request(data)
        # reject bad input before a browser is launched
        validate_actions(raw_actions)
    except InvalidActionError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        payload = _run(run_playback(url, raw_actions, config=CONFIG, normalize=should_normalize))
    except Exception as exc:
        log.error("playback error: %s", exc)
        return jsonify({"error": str(exc)}), 500
    return jsonify(payload)


@app.get("/healthz")
def health():  # pragma: no cover - trivial endpoint
    return "ok", 200


if __name__ == "__main__":  # pragma: no cover - manual run helper
    app.run("0.0.0.0", 7000, threaded=False)
