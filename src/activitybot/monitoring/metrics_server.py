"""
Minimal HTTP server for Prometheus /metrics.

Uses aiohttp.web (already a dependency for the API clients).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from aiohttp import web
from prometheus_client import generate_latest

if TYPE_CHECKING:
    from prometheus_client.registry import CollectorRegistry

logger = logging.getLogger(__name__)

# Type alias for aiohttp handler
_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

# Called before each scrape to refresh snapshot gauges
RefreshFn = Callable[[], None]


def _make_metrics_handler(
    registry: CollectorRegistry,
    refresh_fn: RefreshFn | None = None,
) -> _Handler:
    """Create GET /metrics handler bound to a registry."""

    async def handler(request: web.Request) -> web.Response:
        if refresh_fn is not None:
            refresh_fn()
        body = generate_latest(registry)
        return web.Response(
            body=body,
            content_type="text/plain; version=0.0.4",
            charset="utf-8",
        )

    return handler


def create_metrics_app(
    registry: CollectorRegistry,
    *,
    refresh_fn: RefreshFn | None = None,
) -> web.Application:
    """Create aiohttp Application serving GET /metrics."""
    app = web.Application()
    app.router.add_get("/metrics", _make_metrics_handler(registry, refresh_fn))
    return app


async def start_metrics_server(
    registry: CollectorRegistry,
    host: str = "0.0.0.0",
    port: int = 9090,
    *,
    refresh_fn: RefreshFn | None = None,
) -> web.AppRunner:
    """
    Start the metrics HTTP server.

    Returns:
        AppRunner (pass to stop_metrics_server on shutdown).
    """
    app = create_metrics_app(registry, refresh_fn=refresh_fn)
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Metrics server started on http://%s:%d/metrics", host, port)
    return runner


async def stop_metrics_server(runner: web.AppRunner) -> None:
    """Stop the metrics HTTP server."""
    await runner.cleanup()
    logger.info("Metrics server stopped")
