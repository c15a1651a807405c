"""Session lifecycle: state machine, pairing codes, watchdog, credentials."""

from wabot.session.credentials import CredentialSet, CredentialStore, DirectoryCredentialStore
from wabot.session.manager import SessionManager
from wabot.session.qr_cache import PairingCode, QRCache
from wabot.session.watchdog import Watchdog

__all__ = [
    "CredentialSet",
    "CredentialStore",
    "DirectoryCredentialStore",
    "PairingCode",
    "QRCache",
    "SessionManager",
    "Watchdog",
]
