"""Exception hierarchy shared by the session manager and its callers."""

from __future__ import annotations


class WabotError(Exception):
    """Base class for all wabot errors."""


class SetupError(WabotError):
    """Credentials or transport could not be prepared during start()."""


class NotConnectedError(WabotError):
    """Raised by send() when the session is not CONNECTED."""

    def __init__(self, state: str) -> None:
        super().__init__(f"session is not connected (state={state})")
        self.state = state
