"""Tests for JID helpers."""

from __future__ import annotations

import pytest

from wabot.jid import jid_to_number, number_to_jid


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("5511999999999", "5511999999999@s.whatsapp.net"),
        ("+55 (11) 99999-9999", "5511999999999@s.whatsapp.net"),
        ("5511999999999@s.whatsapp.net", "5511999999999@s.whatsapp.net"),
        ("120363001234567890@g.us", "120363001234567890@g.us"),
    ],
)
def test_number_to_jid(value, expected):
    assert number_to_jid(value) == expected


def test_jid_to_number():
    assert jid_to_number("5511999999999@s.whatsapp.net") == "5511999999999"
    assert jid_to_number(None) == ""
