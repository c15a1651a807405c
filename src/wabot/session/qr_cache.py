"""Most recent pairing code, raw and rendered as PNG."""

from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import UTC, datetime

import qrcode

from wabot.logger import logger


@dataclass(frozen=True)
class PairingCode:
    raw: str
    png: bytes | None  # None when rendering failed
    issued_at: str
    attempt: int


def render_png(raw: str) -> bytes:
    qr = qrcode.QRCode(border=1, box_size=6)
    qr.add_data(raw)
    qr.make(fit=True)
    buf = io.BytesIO()
    qr.make_image().save(buf, format="PNG")
    return buf.getvalue()


class QRCache:
    """Holds one pairing code; a new code replaces the old one."""

    def __init__(self) -> None:
        self._current: PairingCode | None = None
        self._attempts = 0

    @property
    def current(self) -> PairingCode | None:
        return self._current

    @property
    def attempts(self) -> int:
        return self._attempts

    def has_code(self) -> bool:
        return self._current is not None

    def png(self) -> bytes | None:
        return self._current.png if self._current else None

    def put(self, raw: str) -> PairingCode:
        self._attempts += 1
        try:
            png: bytes | None = render_png(raw)
        except Exception:
            logger.exception("Failed to render QR image", attempt=self._attempts)
            png = None
        self._current = PairingCode(
            raw=raw,
            png=png,
            issued_at=datetime.now(UTC).isoformat(),
            attempt=self._attempts,
        )
        logger.info("New pairing code cached", attempt=self._attempts)
        return self._current

    def clear(self) -> None:
        self._current = None
