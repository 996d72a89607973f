"""Snapshot HTTP server.

``GET /`` returns the whole topic store as one JSON object mapping each
topic to its untagged value.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus

from aiohttp import web

from mqttsnap.models.value import TopicValue
from mqttsnap.state.store import TopicStore

_logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey("store", TopicStore)


def _render_snapshot(snapshot: dict[str, TopicValue]) -> bytes:
    body = {topic: value.untagged() for topic, value in snapshot.items()}
    return json.dumps(body, allow_nan=False, ensure_ascii=False).encode("utf-8")


async def handle_snapshot(request: web.Request) -> web.Response:
    """Serve the full topic store."""
    store = request.app[STORE_KEY]
    snapshot = await store.snapshot()
    try:
        body = _render_snapshot(snapshot)
    except (TypeError, ValueError) as exc:
        _logger.error("Snapshot serialization failed: %s", exc)
        return web.json_response(
            {"error_message": str(exc)},
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    return web.Response(body=body, content_type="application/json", charset="utf-8")


def create_app(store: TopicStore) -> web.Application:
    """Build the aiohttp application serving *store*."""
    app = web.Application()
    app[STORE_KEY] = store
    app.router.add_get("/", handle_snapshot)
    return app


async def run_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving *app* and return the runner (call ``cleanup()`` to stop).

    Raises
    ------
    OSError
        If the listening socket cannot be bound.
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    try:
        await site.start()
    except OSError:
        await runner.cleanup()
        raise
    _logger.info(
        "Starting HTTP Server... You can fetch all available data from http://%s:%d/",
        host,
        port,
    )
    return runner
