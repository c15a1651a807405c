"""Data models for wabot."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

Role = Literal["user", "assistant"]
MessageKind = Literal["text", "image", "document", "audio", "other"]


class SessionState(StrEnum):
    IDLE = "idle"
    STARTING = "starting"
    QR_PENDING = "qr_pending"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"
    LOGGED_OUT = "logged_out"


class CloseReason(StrEnum):
    LOGGED_OUT = "logged_out"  # device unlinked from the phone
    CONNECTION_LOST = "connection_lost"
    CONNECT_FAILURE = "connect_failure"
    CONFLICT = "conflict"  # another client took over the session
    BANNED = "banned"  # account temporarily banned


@dataclass
class InboundMessage:
    id: str
    chat_jid: str
    sender: str
    sender_name: str
    text: str
    timestamp: str
    kind: MessageKind = "text"
    is_from_me: bool = False


@dataclass
class ConversationTurn:
    conversation_id: str
    role: Role
    text: str
    timestamp: str
