"""Session lifecycle manager: the state machine around one transport handle.

Transport callbacks never touch state directly. They are posted to an
event queue tagged with the generation of the handle that produced them,
and a single worker applies them one at a time under the session lock.
Timers (watchdog, reconnect) and control commands take the same lock, so
every transition is serialized.

``generation`` is bumped on every start attempt and on stop. Events and timer fires
carrying an older generation are dropped, which makes anything left over
from a superseded attempt inert.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from wabot.errors import NotConnectedError, SetupError
from wabot.logger import bind_session, logger
from wabot.session.credentials import CredentialStore
from wabot.session.qr_cache import QRCache
from wabot.session.state import (
    Closed,
    Closing,
    Connected,
    Idle,
    LoggedOut,
    QrPending,
    Starting,
    State,
    transport_of,
)
from wabot.session.watchdog import Watchdog
from wabot.transport.base import (
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    EmitFn,
    MessageReceived,
    QrIssued,
    Transport,
    TransportEvent,
    TransportFactory,
)
from wabot.types import CloseReason, InboundMessage, SessionState

MessageCallback = Callable[[InboundMessage], Awaitable[None]]


class SessionManager:
    """Owns the single transport handle and drives its lifecycle."""

    def __init__(
        self,
        *,
        transport_factory: TransportFactory,
        credentials: CredentialStore,
        qr_cache: QRCache | None = None,
        watchdog_seconds: float = 40.0,
        reconnect_delay: float = 1.5,
        on_message: MessageCallback | None = None,
    ) -> None:
        self._transport_factory = transport_factory
        self._credentials = credentials
        self._qr = qr_cache if qr_cache is not None else QRCache()
        self._reconnect_delay = reconnect_delay
        self._on_message = on_message

        self._state: State = Idle()
        self._generation = 0
        self._start_in_progress = False
        self._lock = asyncio.Lock()
        self._events: asyncio.Queue[tuple[int, TransportEvent]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._watchdog = Watchdog(watchdog_seconds, self._on_watchdog_fire)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state.kind

    @property
    def transport(self) -> Transport | None:
        return transport_of(self._state)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def start_in_progress(self) -> bool:
        return self._start_in_progress

    @property
    def connected_since(self) -> str | None:
        return self._state.connected_since if isinstance(self._state, Connected) else None

    @property
    def qr_cache(self) -> QRCache:
        return self._qr

    @property
    def watchdog(self) -> Watchdog:
        return self._watchdog

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def device_id(self) -> str | None:
        if isinstance(self._state, Connected) and self._state.device_id:
            return self._state.device_id
        transport = self.transport
        return transport.device_id if transport is not None else None

    def is_connected(self) -> bool:
        return isinstance(self._state, Connected)

    def status(self) -> dict[str, Any]:
        return {
            "connected": self.is_connected(),
            "hasQR": self._qr.has_code(),
            "deviceId": self.device_id,
            "state": self.state.value,
            "qrAttempts": self._qr.attempts,
        }

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open a new transport. Never raises; setup failures leave the state IDLE."""
        if self._start_in_progress:
            logger.warning("start: already in progress, ignoring")
            return
        self._start_in_progress = True
        try:
            async with self._lock:
                await self._open()
        finally:
            self._start_in_progress = False

    async def stop(self) -> None:
        """Tear down the transport and every timer. Safe to call at any time."""
        async with self._lock:
            await self._stop_locked()

    async def relink(self) -> None:
        """Force a brand-new pairing flow."""
        async with self._lock:
            logger.info("Relink requested")
            await self._stop_locked()
            await self._wipe_credentials()
            await self._start_locked()

    async def hard_logout(self) -> None:
        """Unlink the device remotely (best effort), then relink."""
        async with self._lock:
            logger.info("Hard logout requested")
            transport = transport_of(self._state)
            if transport is not None:
                try:
                    await transport.logout()
                except Exception as exc:
                    logger.warning("Remote logout failed; continuing with local cleanup", err=str(exc))
            await self._stop_locked()
            await self._wipe_credentials()
            await self._start_locked()

    async def send(self, target: str, text: str) -> Any:
        state = self._state
        if not isinstance(state, Connected):
            raise NotConnectedError(state.kind.value)
        return await state.transport.send_text(target, text)

    async def drain(self) -> None:
        """Wait until every queued transport event has been applied."""
        await self._events.join()

    async def close(self) -> None:
        """Process shutdown: stop the session and the event worker."""
        await self.stop()
        if self._worker is not None:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        await self._watchdog.shutdown()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Transport event handlers (run on the event worker, lock held)
    # ------------------------------------------------------------------

    async def on_qr(self, code: str) -> None:
        state = self._state
        if not isinstance(state, Starting | QrPending):
            logger.debug("QR ignored", state=state.kind.value)
            return
        self._qr.put(code)
        self._set_state(QrPending(transport=state.transport, generation=state.generation))
        self._watchdog.arm(state.generation)

    async def on_connection_open(self, device_id: str | None = None) -> None:
        state = self._state
        if not isinstance(state, Starting | QrPending):
            logger.debug("Connection open ignored", state=state.kind.value)
            return
        self._qr.clear()
        self._watchdog.cancel()
        self._set_state(
            Connected(
                transport=state.transport,
                generation=state.generation,
                connected_since=datetime.now(UTC).isoformat(),
                device_id=device_id or state.transport.device_id,
            )
        )
        logger.info("Connected to WhatsApp", device_id=self.device_id)

    async def on_connection_close(self, event: ConnectionClosed) -> None:
        state = self._state
        if not isinstance(state, Starting | QrPending | Connected):
            logger.debug("Connection close ignored", state=state.kind.value)
            return
        logger.warning(
            "Connection closed",
            reason=event.reason.value,
            detail=event.detail,
            previous=state.kind.value,
        )
        self._set_state(Closing(transport=state.transport, generation=state.generation))
        await self._disconnect_quietly(state.transport)

        if event.reason is CloseReason.LOGGED_OUT:
            # Device was unlinked from the phone: wipe and pair again
            await self._wipe_credentials()
            self._set_state(LoggedOut())
            await self._start_locked()
            return

        if event.terminal:
            self._watchdog.cancel()
            self._set_state(Closed(reconnect_scheduled=False))
            logger.error("Connection closed without retry", reason=event.reason.value)
            return

        self._set_state(Closed(reconnect_scheduled=True))
        self._schedule_reconnect(state.generation)
        self._watchdog.arm(state.generation)

    async def on_credentials_update(self, device_id: str | None) -> None:
        try:
            saved = await self._credentials.save(device_id)
        except Exception as exc:
            logger.warning("Credential save failed", err=str(exc))
            return
        if saved:
            logger.info("Credentials saved", device_id=device_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_state(self, new: State) -> None:
        previous = self._state
        self._state = new
        if previous.kind is not new.kind:
            logger.info(
                "Session state changed",
                previous=previous.kind.value,
                state=new.kind.value,
                generation=self._generation,
            )

    def _track(self, task: asyncio.Task[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _emitter(self, generation: int) -> EmitFn:
        def emit(event: TransportEvent) -> None:
            self._events.put_nowait((generation, event))

        return emit

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.ensure_future(self._process_events())

    async def _process_events(self) -> None:
        while True:
            generation, event = await self._events.get()
            try:
                async with self._lock:
                    await self._apply(generation, event)
            except Exception:
                logger.exception("Failed to apply transport event", event=type(event).__name__)
            finally:
                self._events.task_done()

    async def _apply(self, generation: int, event: TransportEvent) -> None:
        if generation != self._generation:
            logger.debug(
                "Dropping event from superseded transport",
                event=type(event).__name__,
                event_generation=generation,
                generation=self._generation,
            )
            return
        match event:
            case QrIssued(code=code):
                await self.on_qr(code)
            case ConnectionOpened(device_id=device_id):
                await self.on_connection_open(device_id)
            case ConnectionClosed():
                await self.on_connection_close(event)
            case CredentialsUpdated(device_id=device_id):
                await self.on_credentials_update(device_id)
            case MessageReceived(message=message):
                self._dispatch_message(message)

    def _dispatch_message(self, message: InboundMessage) -> None:
        if self._on_message is None:
            return
        self._track(asyncio.ensure_future(self._run_message_handler(message)))

    async def _run_message_handler(self, message: InboundMessage) -> None:
        assert self._on_message is not None
        try:
            await self._on_message(message)
        except Exception:
            logger.exception("Message handler failed", chat_jid=message.chat_jid)

    async def _start_locked(self) -> None:
        """start() for callers that already hold the lock."""
        if self._start_in_progress:
            logger.warning("start: already in progress, ignoring")
            return
        self._start_in_progress = True
        try:
            await self._open()
        finally:
            self._start_in_progress = False

    async def _open(self) -> None:
        self._ensure_worker()
        self._cancel_reconnect()
        self._qr.clear()
        await self._release_transport()
        if isinstance(self._state, Closing):
            # Old handle is already disconnected
            self._set_state(Idle())

        self._generation += 1
        generation = self._generation
        bind_session(generation)
        self._watchdog.arm(generation)
        try:
            await self._setup(generation)
        except SetupError as exc:
            logger.error("Session setup failed", err=str(exc), generation=generation)
            await self._release_transport()
            self._set_state(Idle())

    async def _setup(self, generation: int) -> None:
        try:
            creds = await self._credentials.load()
        except Exception as exc:
            raise SetupError(f"could not load credentials: {exc}") from exc
        if creds is None:
            logger.info("No stored credentials, a new pairing code will be issued")

        try:
            transport = self._transport_factory(
                self._credentials.location, self._emitter(generation)
            )
        except Exception as exc:
            raise SetupError(f"could not create transport: {exc}") from exc

        self._set_state(Starting(transport=transport, generation=generation))
        try:
            await asyncio.wait_for(transport.connect(), timeout=self._watchdog.timeout)
        except Exception as exc:
            raise SetupError(f"could not connect: {exc!r}") from exc

    async def _stop_locked(self) -> None:
        self._watchdog.cancel()
        self._cancel_reconnect()
        await self._release_transport()
        # Timer fires and events already in flight belong to the stopped attempt
        self._generation += 1
        bind_session(self._generation)
        self._set_state(Closed(reconnect_scheduled=False))

    async def _release_transport(self) -> None:
        """Move a live handle through CLOSING and disconnect it."""
        state = self._state
        transport = transport_of(state)
        if transport is None:
            return
        self._set_state(Closing(transport=transport, generation=self._generation))
        await self._disconnect_quietly(transport)

    @staticmethod
    async def _disconnect_quietly(transport: Transport) -> None:
        try:
            await transport.disconnect()
        except Exception as exc:
            logger.warning("Error closing transport", err=str(exc))

    async def _wipe_credentials(self) -> None:
        self._qr.clear()
        try:
            ok = await self._credentials.wipe()
        except Exception as exc:
            logger.warning("Credential wipe failed (continuing)", err=str(exc))
            return
        if not ok:
            logger.warning("Credential wipe incomplete (continuing)")

    def _schedule_reconnect(self, generation: int) -> None:
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(
            self._reconnect_delay, self._fire_reconnect, generation
        )
        logger.info("Reconnect scheduled", delay=self._reconnect_delay, generation=generation)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _fire_reconnect(self, generation: int) -> None:
        self._reconnect_handle = None
        self._track(asyncio.ensure_future(self._reconnect(generation)))

    async def _reconnect(self, generation: int) -> None:
        async with self._lock:
            if generation != self._generation or not isinstance(self._state, Closed):
                logger.debug("Stale reconnect ignored", generation=generation)
                return
            logger.info("Reconnecting")
            await self._start_locked()

    async def _on_watchdog_fire(self, generation: int) -> None:
        async with self._lock:
            if generation != self._generation:
                logger.debug("Stale watchdog fire ignored", generation=generation)
                return
            if isinstance(self._state, Connected | QrPending):
                return
            logger.warning(
                "Watchdog: no connection and no QR, forcing restart",
                state=self._state.kind.value,
            )
            await self._stop_locked()
            await self._start_locked()
