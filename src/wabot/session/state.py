"""Session state as a tagged variant.

Each state carries only the fields valid for it, so a transport handle in
IDLE or a ``connected_since`` outside CONNECTED cannot be represented.
"""

from __future__ import annotations

from dataclasses import dataclass

from wabot.transport.base import Transport
from wabot.types import SessionState


@dataclass(frozen=True)
class Idle:
    kind = SessionState.IDLE


@dataclass(frozen=True)
class Starting:
    transport: Transport
    generation: int
    kind = SessionState.STARTING


@dataclass(frozen=True)
class QrPending:
    transport: Transport
    generation: int
    kind = SessionState.QR_PENDING


@dataclass(frozen=True)
class Connected:
    transport: Transport
    generation: int
    connected_since: str
    device_id: str | None = None
    kind = SessionState.CONNECTED


@dataclass(frozen=True)
class Closing:
    transport: Transport
    generation: int
    kind = SessionState.CLOSING


@dataclass(frozen=True)
class Closed:
    reconnect_scheduled: bool = False
    kind = SessionState.CLOSED


@dataclass(frozen=True)
class LoggedOut:
    kind = SessionState.LOGGED_OUT


State = Idle | Starting | QrPending | Connected | Closing | Closed | LoggedOut

# States that own a live transport handle.
WithTransport = Starting | QrPending | Connected | Closing


def transport_of(state: State) -> Transport | None:
    if isinstance(state, WithTransport):
        return state.transport
    return None
