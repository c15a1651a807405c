"""In-memory counters behind the dashboard's /status view."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from wabot.jid import jid_to_number
from wabot.types import MessageKind

RECENT_ACTIVITY_LIMIT = 50


@dataclass
class Activity:
    type: str
    description: str
    timestamp: str


@dataclass
class BotStats:
    start_time: float = field(default_factory=time.time)
    total_messages: int = 0
    ai_responses: int = 0
    chats: set[str] = field(default_factory=set)
    messages_by_hour: list[int] = field(default_factory=lambda: [0] * 24)
    message_types: dict[str, int] = field(
        default_factory=lambda: {"text": 0, "image": 0, "document": 0, "audio": 0, "other": 0}
    )
    recent_activity: deque[Activity] = field(
        default_factory=lambda: deque(maxlen=RECENT_ACTIVITY_LIMIT)
    )

    def add_activity(self, type_: str, description: str) -> None:
        # Newest first
        self.recent_activity.appendleft(
            Activity(type=type_, description=description, timestamp=datetime.now(UTC).isoformat())
        )

    def record_message(self, chat_jid: str, kind: MessageKind, hour: int | None = None) -> None:
        self.total_messages += 1
        self.chats.add(chat_jid)
        self.message_types[kind] = self.message_types.get(kind, 0) + 1
        if hour is None:
            hour = datetime.now().hour
        self.messages_by_hour[hour] += 1
        self.add_activity("message", f"Message received from {jid_to_number(chat_jid)}")

    def record_ai_reply(self, chat_jid: str) -> None:
        self.ai_responses += 1
        self.add_activity("ai", f"AI reply generated for {jid_to_number(chat_jid)}")

    def snapshot(self, recent: int = 10) -> dict[str, Any]:
        return {
            "totalMessages": self.total_messages,
            "totalChats": len(self.chats),
            "aiResponses": self.ai_responses,
            "uptime": int((time.time() - self.start_time) * 1000),
            "messagesByHour": list(self.messages_by_hour),
            "messageTypes": dict(self.message_types),
            "recentActivity": [
                {"type": a.type, "description": a.description, "timestamp": a.timestamp}
                for a in list(self.recent_activity)[:recent]
            ],
        }
