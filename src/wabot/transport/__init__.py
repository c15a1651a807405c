"""Protocol clients the session manager drives.

``base`` holds the contract and event types; ``whatsapp`` is the neonize
implementation, imported lazily because neonize is a native binding.
"""

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

__all__ = [
    "ConnectionClosed",
    "ConnectionOpened",
    "CredentialsUpdated",
    "EmitFn",
    "MessageReceived",
    "QrIssued",
    "Transport",
    "TransportEvent",
    "TransportFactory",
]
