"""Shared test fixtures for wabot."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from wabot.session.credentials import CredentialSet
from wabot.transport.base import EmitFn, TransportEvent
from wabot.types import InboundMessage

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, importable by test files)
# ---------------------------------------------------------------------------

# Cached property names that must be set via __dict__ (not model_construct).
_CACHED_PROPERTY_NAMES = frozenset({"project_root", "data_dir", "auth_dir", "history_db_path"})


def make_settings(**overrides):
    """Create a Settings object with defaults for testing.

    Accepts both model fields (session, ai, etc.) and cached property
    overrides (project_root, data_dir, auth_dir, history_db_path).

    Usage::

        s = make_settings(auth_dir=tmp_path / "auth")
        s = make_settings(ai=AIConfig(provider="openai"))
    """
    from wabot.config import (
        AIConfig,
        HistoryConfig,
        LoggingConfig,
        SecretsConfig,
        ServerConfig,
        SessionConfig,
        Settings,
    )

    cached = {k: overrides.pop(k) for k in list(overrides) if k in _CACHED_PROPERTY_NAMES}

    defaults = {
        "session": SessionConfig(),
        "server": ServerConfig(),
        "logging": LoggingConfig(),
        "ai": AIConfig(),
        "secrets": SecretsConfig(),
        "history": HistoryConfig(),
    }
    defaults.update(overrides)
    s = Settings.model_construct(**defaults)

    for key, value in cached.items():
        s.__dict__[key] = value

    return s


def make_message(
    *,
    id: str = "m1",
    chat_jid: str = "5511999999999@s.whatsapp.net",
    sender: str = "5511999999999@s.whatsapp.net",
    sender_name: str = "Alice",
    text: str = "hello",
    timestamp: str = "2024-01-01T00:00:00+00:00",
    kind: str = "text",
    is_from_me: bool = False,
) -> InboundMessage:
    return InboundMessage(
        id=id,
        chat_jid=chat_jid,
        sender=sender,
        sender_name=sender_name,
        text=text,
        timestamp=timestamp,
        kind=kind,
        is_from_me=is_from_me,
    )


class FakeTransport:
    """In-memory transport: tests push events through ``emit``."""

    def __init__(self, auth_dir: Path, emit: EmitFn) -> None:
        self.auth_dir = auth_dir
        self.emit_fn = emit
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.logout_calls = 0
        self.sent: list[tuple[str, str]] = []
        self.connect_gate: asyncio.Event | None = None
        self.connect_error: Exception | None = None
        self.logout_error: Exception | None = None
        self._device_id: str | None = None

    @property
    def device_id(self) -> str | None:
        return self._device_id

    def emit(self, event: TransportEvent) -> None:
        self.emit_fn(event)

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            raise self.connect_error

    async def disconnect(self) -> None:
        self.disconnect_calls += 1

    async def logout(self) -> None:
        self.logout_calls += 1
        if self.logout_error is not None:
            raise self.logout_error

    async def send_text(self, jid: str, text: str) -> Any:
        self.sent.append((jid, text))
        return {"id": f"sent-{len(self.sent)}"}


class FakeTransportFactory:
    """Records every transport it creates; ``configure`` runs on each new one."""

    def __init__(self, configure=None) -> None:
        self.created: list[FakeTransport] = []
        self.configure = configure
        self.error: Exception | None = None

    def __call__(self, auth_dir: Path, emit: EmitFn) -> FakeTransport:
        if self.error is not None:
            raise self.error
        transport = FakeTransport(auth_dir, emit)
        if self.configure is not None:
            self.configure(transport)
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.created[-1]


class FakeCredentialStore:
    """Credential store that records calls; ``log`` keeps their order."""

    def __init__(self, location: Path | None = None, *, has_creds: bool = False) -> None:
        self._location = location or Path("/tmp/wabot-test-auth")
        self.has_creds = has_creds
        self.log: list[str] = []
        self.load_error: Exception | None = None
        self.wipe_result = True
        self.saved: list[str | None] = []

    @property
    def location(self) -> Path:
        return self._location

    async def load(self) -> CredentialSet | None:
        self.log.append("load")
        if self.load_error is not None:
            raise self.load_error
        return CredentialSet(location=self._location) if self.has_creds else None

    async def save(self, device_id: str | None) -> bool:
        self.log.append("save")
        self.saved.append(device_id)
        self.has_creds = True
        return True

    async def wipe(self) -> bool:
        self.log.append("wipe")
        self.has_creds = False
        return self.wipe_result


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Ensure each test starts with a clean Settings singleton.

    Uses ``make_settings()`` to build from pure defaults: no config.toml,
    no .env, no file I/O. Tests are fully isolated from production config.
    """
    safe = make_settings()
    monkeypatch.setattr("wabot.config._settings", safe)


@pytest.fixture(autouse=True, scope="session")
def _close_test_database():
    """Close the aiosqlite connection after all tests complete.

    Uses ``stop()`` + thread join rather than ``await close()`` because
    the connection was created on a function-scoped event loop.
    """
    yield
    import wabot.history._connection as db_conn

    if db_conn._db is not None:
        db_conn._db.stop()
        if db_conn._db._thread is not None and db_conn._db._thread.is_alive():
            db_conn._db._thread.join(timeout=2)
        db_conn._db = None


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def factory() -> FakeTransportFactory:
    return FakeTransportFactory()


@pytest.fixture
def creds(tmp_path) -> FakeCredentialStore:
    return FakeCredentialStore(tmp_path / "auth")
