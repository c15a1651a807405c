"""Control surface: JSON API for dashboards and operators.

Every mutating endpoint goes through the session manager's commands, so
HTTP requests are serialized with the session's own transitions.
"""

from __future__ import annotations

import json
import time
from typing import Any, Protocol

from aiohttp import web

from wabot.errors import NotConnectedError
from wabot.jid import jid_to_number, number_to_jid
from wabot.logger import logger

_start_time = time.monotonic()


class HttpDeps(Protocol):
    """Dependencies injected by app.py."""

    def session_status(self) -> dict[str, Any]: ...

    def qr_png(self) -> bytes | None: ...

    def qr_attempts(self) -> int: ...

    def ai_provider_name(self) -> str: ...

    def stats_snapshot(self) -> dict[str, Any]: ...

    async def relink(self) -> None: ...

    async def hard_logout(self) -> None: ...

    async def send(self, target: str, text: str) -> Any: ...

    async def clear_history(self, conversation_id: str) -> int: ...


deps_key = web.AppKey("deps", HttpDeps)


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"ok": False, "error": message}, status=status)


async def _read_json(request: web.Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


# ------------------------------------------------------------------
# Read-only endpoints
# ------------------------------------------------------------------


async def _handle_health(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    return web.json_response(
        {
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - _start_time),
            "state": deps.session_status()["state"],
        }
    )


async def _handle_status(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    status = deps.session_status()
    return web.json_response(
        {
            "connected": status["connected"],
            "hasQR": status["hasQR"],
            "deviceId": status["deviceId"],
            "state": status["state"],
            "aiProvider": deps.ai_provider_name(),
            "stats": deps.stats_snapshot(),
        }
    )


async def _handle_qr(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    png = deps.qr_png()
    if not png:
        return _error("No active QR code", 404)
    return web.Response(body=png, content_type="image/png")


async def _handle_qr_status(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    status = deps.session_status()
    return web.json_response(
        {
            "hasQR": status["hasQR"],
            "connected": status["connected"],
            "retries": deps.qr_attempts(),
        }
    )


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


async def _handle_relink(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    try:
        await deps.relink()
    except Exception as exc:
        logger.exception("Relink failed")
        return _error(str(exc), 500)
    return web.json_response(
        {"ok": True, "message": "Relink requested. Load /qr to see the new QR code."}
    )


async def _handle_logout(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    try:
        await deps.hard_logout()
    except Exception as exc:
        logger.exception("Logout failed")
        return _error(str(exc), 500)
    return web.json_response({"ok": True, "message": "Logged out. A new QR code is on /qr."})


async def _handle_send(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    body = await _read_json(request) or {}
    to = str(body.get("to") or "").strip()
    text = str(body.get("text") or "")
    if not to or not text:
        return _error("Required fields: to, text", 400)
    jid = number_to_jid(to)
    if not jid_to_number(jid):
        return _error(f"Invalid recipient: {to}", 400)
    try:
        await deps.send(jid, text)
    except NotConnectedError as exc:
        return _error(str(exc), 503)
    except Exception as exc:
        logger.warning("Manual send failed", to=to, err=str(exc))
        return _error(str(exc), 500)
    return web.json_response({"ok": True})


async def _handle_clear_history(request: web.Request) -> web.Response:
    deps = request.app[deps_key]
    body = await _read_json(request) or {}
    conversation_id = str(body.get("conversationId") or "").strip()
    if not conversation_id:
        return _error("Required field: conversationId", 400)
    jid = number_to_jid(conversation_id)
    if not jid_to_number(jid):
        return _error(f"Invalid conversationId: {conversation_id}", 400)
    deleted = await deps.clear_history(jid)
    return web.json_response({"ok": True, "deleted": deleted})


# ------------------------------------------------------------------
# Server setup
# ------------------------------------------------------------------


def create_app(deps: HttpDeps) -> web.Application:
    app = web.Application()
    app[deps_key] = deps
    app.router.add_get("/health", _handle_health)
    app.router.add_get("/status", _handle_status)
    app.router.add_get("/qr", _handle_qr)
    app.router.add_get("/qr-status", _handle_qr_status)
    app.router.add_post("/relink", _handle_relink)
    app.router.add_post("/logout", _handle_logout)
    app.router.add_post("/send", _handle_send)
    app.router.add_post("/clear-history", _handle_clear_history)
    return app


async def start_http_server(deps: HttpDeps, host: str, port: int) -> web.AppRunner:
    """Create, start, and return the HTTP server runner."""
    runner = web.AppRunner(create_app(deps))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("HTTP server listening", host=host, port=port)
    return runner
