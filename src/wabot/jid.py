"""WhatsApp JID helpers."""

from __future__ import annotations

import re

USER_SERVER = "s.whatsapp.net"


def number_to_jid(number: str) -> str:
    """Turn a phone number (any formatting) into a user JID.

    Values that already carry a server part are returned untouched.
    """
    value = str(number).strip()
    if "@" in value:
        return value
    return f"{re.sub(r'[^0-9]', '', value)}@{USER_SERVER}"


def jid_to_number(jid: str | None) -> str:
    return (jid or "").split("@", 1)[0]
