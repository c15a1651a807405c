"""Main orchestrator: wires the session, pipeline, and control surface together."""

from __future__ import annotations

import asyncio
import os
import signal
from pathlib import Path
from typing import Any

from wabot.ai import AIProvider, create_provider
from wabot.config import Settings, get_settings
from wabot.history import clear_history, close_database, init_database
from wabot.http_server import start_http_server
from wabot.logger import logger, set_level
from wabot.message_handler import handle_inbound
from wabot.session import DirectoryCredentialStore, QRCache, SessionManager
from wabot.stats import BotStats
from wabot.transport import EmitFn, Transport
from wabot.types import InboundMessage


def _whatsapp_factory(auth_dir: Path, emit: EmitFn) -> Transport:
    # neonize loads a native library on import; keep it out of module import
    from wabot.transport.whatsapp import create_whatsapp_transport

    return create_whatsapp_transport(auth_dir, emit)


class WabotApp:
    """Owns all runtime state for one bot process."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.stats = BotStats()
        self.ai_provider: AIProvider = create_provider(self.settings)
        self.credentials = DirectoryCredentialStore(self.settings.auth_dir)
        self.session = SessionManager(
            transport_factory=_whatsapp_factory,
            credentials=self.credentials,
            qr_cache=QRCache(),
            watchdog_seconds=self.settings.session.watchdog_seconds,
            reconnect_delay=self.settings.session.reconnect_delay_seconds,
            on_message=self._on_inbound,
        )
        self._shutting_down = False
        self._stopped = asyncio.Event()
        self._http_runner: Any | None = None

    async def _on_inbound(self, message: InboundMessage) -> None:
        await handle_inbound(self._make_message_deps(), message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _shutdown(self, sig_name: str) -> None:
        """Graceful shutdown handler. Second signal force-exits."""
        if self._shutting_down:
            logger.info("Force shutdown")
            os._exit(1)
        self._shutting_down = True
        logger.info("Shutdown signal received", signal=sig_name)

        # Force-exit if draining stalls
        loop = asyncio.get_running_loop()
        loop.call_later(12, lambda: os._exit(1))

        try:
            if self._http_runner:
                await self._http_runner.cleanup()
            await self.session.close()
            await close_database()
        finally:
            self._stopped.set()

    async def run(self) -> None:
        """Startup sequence; returns after a graceful shutdown."""
        set_level(self.settings.logging.level)
        await init_database()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.ensure_future(self._shutdown(s.name)),
            )

        server = self.settings.server
        self._http_runner = await start_http_server(
            self._make_http_deps(), server.host, server.port
        )
        logger.info(
            "wabot started",
            ai_provider=self.ai_provider.name,
            auth_dir=str(self.credentials.location),
        )

        await self.session.start()
        await self._stopped.wait()
        logger.info("wabot stopped")

    # ------------------------------------------------------------------
    # Dependency adapters
    # ------------------------------------------------------------------

    def _make_message_deps(self) -> Any:
        app = self

        class _Deps:
            @property
            def stats(self) -> BotStats:
                return app.stats

            @property
            def ai_provider(self) -> AIProvider:
                return app.ai_provider

            async def send(self, target: str, text: str) -> Any:
                return await app.session.send(target, text)

        return _Deps()

    def _make_http_deps(self) -> Any:
        """Create the dependency object for the HTTP server."""
        app = self

        class _Deps:
            def session_status(self) -> dict[str, Any]:
                return app.session.status()

            def qr_png(self) -> bytes | None:
                return app.session.qr_cache.png()

            def qr_attempts(self) -> int:
                return app.session.qr_cache.attempts

            def ai_provider_name(self) -> str:
                return app.ai_provider.name

            def stats_snapshot(self) -> dict[str, Any]:
                return app.stats.snapshot()

            async def relink(self) -> None:
                await app.session.relink()

            async def hard_logout(self) -> None:
                await app.session.hard_logout()

            async def send(self, target: str, text: str) -> Any:
                return await app.session.send(target, text)

            async def clear_history(self, conversation_id: str) -> int:
                deleted = await clear_history(conversation_id)
                app.stats.add_activity("history", f"History cleared for {conversation_id}")
                return deleted

        return _Deps()
