"""Tests for dashboard counters."""

from __future__ import annotations

from wabot.stats import RECENT_ACTIVITY_LIMIT, BotStats


def test_record_message_updates_counters():
    stats = BotStats()
    stats.record_message("1@s.whatsapp.net", "text", hour=9)
    stats.record_message("1@s.whatsapp.net", "image", hour=9)
    stats.record_message("2@s.whatsapp.net", "text", hour=23)

    snap = stats.snapshot()
    assert snap["totalMessages"] == 3
    assert snap["totalChats"] == 2
    assert snap["messagesByHour"][9] == 2
    assert snap["messagesByHour"][23] == 1
    assert snap["messageTypes"]["text"] == 2
    assert snap["messageTypes"]["image"] == 1
    assert snap["uptime"] >= 0


def test_recent_activity_is_newest_first():
    stats = BotStats()
    stats.record_message("111@s.whatsapp.net", "text", hour=0)
    stats.record_ai_reply("111@s.whatsapp.net")

    recent = stats.snapshot()["recentActivity"]
    assert recent[0]["type"] == "ai"
    assert recent[0]["description"] == "AI reply generated for 111"
    assert recent[1]["type"] == "message"


def test_recent_activity_is_bounded():
    stats = BotStats()
    for i in range(RECENT_ACTIVITY_LIMIT + 5):
        stats.add_activity("message", f"m{i}")

    assert len(stats.recent_activity) == RECENT_ACTIVITY_LIMIT
    assert len(stats.snapshot(recent=10)["recentActivity"]) == 10
    assert stats.snapshot()["recentActivity"][0]["description"] == f"m{RECENT_ACTIVITY_LIMIT + 4}"
