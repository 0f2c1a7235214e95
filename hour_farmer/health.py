"""Minimal status HTTP server: liveness plus a per-account snapshot."""
from __future__ import annotations

import logging

from aiohttp import web

from hour_farmer.fleet import Fleet

logger = logging.getLogger(__name__)

FLEET_KEY = web.AppKey("fleet", Fleet)


async def health_handler(request: web.Request) -> web.Response:
    return web.Response(text="OK")


async def status_handler(request: web.Request) -> web.Response:
    fleet = request.app[FLEET_KEY]
    return web.json_response({"accounts": [status.as_dict() for status in fleet.statuses()]})


def create_status_app(fleet: Fleet) -> web.Application:
    app = web.Application()
    app[FLEET_KEY] = fleet
    app.router.add_get("/", health_handler)
    app.router.add_get("/health", health_handler)
    app.router.add_get("/status", status_handler)
    return app


async def start_status_server(fleet: Fleet, port: int, host: str = "0.0.0.0") -> web.AppRunner:
    runner = web.AppRunner(create_status_app(fleet))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Status server started on port %d", port)
    return runner
