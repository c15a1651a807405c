"""Credential store: pairing material that lets the session survive restarts.

The transport library owns the on-disk format inside the auth directory.
This store only decides whether material exists, records a small metadata
file when the transport reports a credential update, and wipes the whole
directory when pairing must start over. Every failure is logged and
reported as ``False``; none of them may block a restart.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from wabot.logger import logger

METADATA_FILE = "creds.json"


@dataclass(frozen=True)
class CredentialSet:
    """Opaque handle on persisted pairing material."""

    location: Path
    device_id: str | None = None
    saved_at: str | None = None


class CredentialStore(Protocol):
    @property
    def location(self) -> Path: ...

    async def load(self) -> CredentialSet | None: ...

    async def save(self, device_id: str | None) -> bool: ...

    async def wipe(self) -> bool: ...


class DirectoryCredentialStore:
    """Credentials kept under a single operator-configured directory."""

    def __init__(self, auth_dir: Path) -> None:
        self._dir = auth_dir

    @property
    def location(self) -> Path:
        return self._dir

    def _metadata_path(self) -> Path:
        return self._dir / METADATA_FILE

    def _has_material(self) -> bool:
        return any(p.name != METADATA_FILE for p in self._dir.iterdir())

    async def load(self) -> CredentialSet | None:
        """Return the stored credentials, or None when a fresh pairing is needed.

        Raises OSError if the directory cannot be created; start() turns that
        into a setup failure.
        """
        self._dir.mkdir(parents=True, exist_ok=True)
        if not self._has_material():
            return None
        meta: dict[str, str] = {}
        path = self._metadata_path()
        if path.exists():
            try:
                meta = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Unreadable credential metadata", path=str(path), err=str(exc))
        return CredentialSet(
            location=self._dir,
            device_id=meta.get("device_id"),
            saved_at=meta.get("saved_at"),
        )

    async def save(self, device_id: str | None) -> bool:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            payload = {"device_id": device_id, "saved_at": datetime.now(UTC).isoformat()}
            self._metadata_path().write_text(json.dumps(payload))
        except OSError as exc:
            logger.warning("Could not save credential metadata", err=str(exc))
            return False
        return True

    async def wipe(self) -> bool:
        logger.warning("Resetting credentials", auth_dir=str(self._dir))
        ok = True
        try:
            if self._dir.exists():
                await asyncio.to_thread(shutil.rmtree, self._dir)
        except OSError as exc:
            logger.warning("Could not delete auth dir (continuing)", err=str(exc))
            ok = False
        try:
            # Recreate empty so the next transport can write immediately
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Could not recreate auth dir", err=str(exc))
            ok = False
        return ok
