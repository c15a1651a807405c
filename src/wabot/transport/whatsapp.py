"""WhatsApp transport using neonize (whatsmeow Python bindings).

Every neonize callback is translated into a transport event and handed to
``emit``; no lifecycle decisions are made here.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from neonize.aioze import client as neonize_client
from neonize.aioze import events as neonize_events
from neonize.aioze.client import NewAClient
from neonize.events import (
    ConnectedEv,
    ConnectFailureEv,
    DisconnectedEv,
    LoggedOutEv,
    MessageEv,
    PairStatusEv,
    StreamReplacedEv,
    TemporaryBanEv,
)
from neonize.proto.Neonize_pb2 import JID
from neonize.utils.jid import Jid2String, build_jid

from wabot.logger import logger
from wabot.transport.base import (
    ConnectionClosed,
    ConnectionOpened,
    CredentialsUpdated,
    EmitFn,
    MessageReceived,
    QrIssued,
)
from wabot.types import CloseReason, InboundMessage, MessageKind

AUTH_DB_NAME = "neonize.db"


class WhatsAppTransport:
    """One neonize client bound to an auth directory."""

    def __init__(self, auth_dir: Path, emit: EmitFn) -> None:
        self._emit = emit
        self._device_id: str | None = None
        self._idle_task: asyncio.Task[None] | None = None

        # Neonize keeps module-level loop references; patch both modules so
        # events and internal tasks bind to this running loop.
        loop = asyncio.get_running_loop()
        neonize_events.event_global_loop = loop
        neonize_client.event_global_loop = loop

        auth_dir.mkdir(parents=True, exist_ok=True)
        self._client = NewAClient(str(auth_dir / AUTH_DB_NAME))
        self._register_events()

    @property
    def device_id(self) -> str | None:
        return self._device_id

    def _register_events(self) -> None:
        @self._client.event.qr
        async def on_qr(_client: NewAClient, qr_data: bytes) -> None:
            code = qr_data.decode() if isinstance(qr_data, bytes) else str(qr_data)
            self._emit(QrIssued(code=code))

        @self._client.event(ConnectedEv)
        async def on_connected(_client: NewAClient, _ev: ConnectedEv) -> None:
            self._device_id = self._read_device_id()
            self._emit(ConnectionOpened(device_id=self._device_id))

        @self._client.event(PairStatusEv)
        async def on_pair_status(_client: NewAClient, ev: PairStatusEv) -> None:
            self._device_id = ev.ID.User or self._device_id
            self._emit(CredentialsUpdated(device_id=self._device_id))

        @self._client.event(LoggedOutEv)
        async def on_logged_out(_client: NewAClient, _ev: LoggedOutEv) -> None:
            self._emit(ConnectionClosed(reason=CloseReason.LOGGED_OUT))

        @self._client.event(DisconnectedEv)
        async def on_disconnected(_client: NewAClient, _ev: DisconnectedEv) -> None:
            self._emit(ConnectionClosed(reason=CloseReason.CONNECTION_LOST))

        @self._client.event(ConnectFailureEv)
        async def on_connect_failure(_client: NewAClient, ev: ConnectFailureEv) -> None:
            self._emit(
                ConnectionClosed(
                    reason=CloseReason.CONNECT_FAILURE,
                    detail=str(getattr(ev, "Reason", "")),
                )
            )

        @self._client.event(StreamReplacedEv)
        async def on_stream_replaced(_client: NewAClient, _ev: StreamReplacedEv) -> None:
            # whatsmeow neither reconnects nor sends Disconnected after a replace
            self._emit(ConnectionClosed(reason=CloseReason.CONFLICT, detail="stream replaced"))

        @self._client.event(TemporaryBanEv)
        async def on_temporary_ban(_client: NewAClient, ev: TemporaryBanEv) -> None:
            self._emit(
                ConnectionClosed(
                    reason=CloseReason.BANNED,
                    detail=str(getattr(ev, "Code", "")),
                    terminal=True,
                )
            )

        @self._client.event(MessageEv)
        async def on_message(_client: NewAClient, message: MessageEv) -> None:
            try:
                inbound = to_inbound(message)
            except Exception:
                logger.exception(
                    "Failed to decode inbound message",
                    message_id=getattr(getattr(message, "Info", None), "ID", "unknown"),
                )
                return
            if inbound is not None:
                self._emit(MessageReceived(message=inbound))

    def _read_device_id(self) -> str | None:
        device = getattr(self._client, "me", None)
        jid = getattr(device, "JID", None)
        user = getattr(jid, "User", None)
        return user or self._device_id

    async def connect(self) -> None:
        await self._client.connect()
        # Run idle in background so events keep firing
        self._idle_task = asyncio.ensure_future(self._client.idle())

    async def disconnect(self) -> None:
        if self._idle_task:
            self._idle_task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await self._idle_task
            self._idle_task = None
        await self._client.disconnect()

    async def logout(self) -> None:
        await self._client.logout()

    async def send_text(self, jid: str, text: str) -> Any:
        return await self._client.send_message(parse_jid(jid), text)


def parse_jid(jid_str: str) -> JID:
    user, _, server = jid_str.partition("@")
    return build_jid(user, server) if server else build_jid(user)


def _message_kind(msg: Any) -> MessageKind:
    if msg.conversation or msg.HasField("extendedTextMessage"):
        return "text"
    if msg.HasField("imageMessage"):
        return "image"
    if msg.HasField("documentMessage"):
        return "document"
    if msg.HasField("audioMessage"):
        return "audio"
    return "other"


def to_inbound(message: MessageEv) -> InboundMessage | None:
    """Translate a neonize MessageEv; returns None for broadcast/status traffic."""
    info = message.Info
    source = info.MessageSource
    chat_jid = Jid2String(source.Chat)
    if not chat_jid or chat_jid == "status@broadcast":
        return None

    ts = info.Timestamp
    if ts > 1e10:
        ts = ts / 1000
    timestamp = datetime.fromtimestamp(ts, tz=UTC).isoformat()

    msg = message.Message
    text = (
        msg.conversation
        or msg.extendedTextMessage.text
        or msg.imageMessage.caption
        or msg.videoMessage.caption
        or ""
    )
    sender_jid = Jid2String(source.Sender)
    return InboundMessage(
        id=info.ID,
        chat_jid=chat_jid,
        sender=sender_jid,
        sender_name=info.Pushname or sender_jid.split("@")[0],
        text=text,
        timestamp=timestamp,
        kind=_message_kind(msg),
        is_from_me=bool(source.IsFromMe),
    )


def create_whatsapp_transport(auth_dir: Path, emit: EmitFn) -> WhatsAppTransport:
    """TransportFactory used by the app."""
    return WhatsAppTransport(auth_dir, emit)
