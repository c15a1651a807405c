"""Transport contract: what the session manager needs from a protocol client.

A transport is created per start attempt. It reports everything that
happens on the wire through a single ``emit`` callback so the session
manager can queue and apply events one at a time.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from wabot.types import CloseReason, InboundMessage


@dataclass(frozen=True)
class QrIssued:
    code: str


@dataclass(frozen=True)
class ConnectionOpened:
    device_id: str | None = None


@dataclass(frozen=True)
class ConnectionClosed:
    reason: CloseReason
    detail: str = ""
    # Terminal closes are signalled explicitly, never inferred from the reason.
    terminal: bool = False


@dataclass(frozen=True)
class CredentialsUpdated:
    device_id: str | None = None


@dataclass(frozen=True)
class MessageReceived:
    message: InboundMessage


TransportEvent = QrIssued | ConnectionOpened | ConnectionClosed | CredentialsUpdated | MessageReceived

EmitFn = Callable[[TransportEvent], None]


class Transport(Protocol):
    """One live protocol client."""

    @property
    def device_id(self) -> str | None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def logout(self) -> None: ...

    async def send_text(self, jid: str, text: str) -> Any: ...


class TransportFactory(Protocol):
    def __call__(self, auth_dir: Path, emit: EmitFn) -> Transport: ...
