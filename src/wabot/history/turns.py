"""Conversation turn storage and retrieval."""

from __future__ import annotations

from datetime import UTC, datetime

from wabot.config import get_settings
from wabot.history._connection import _get_db
from wabot.types import ConversationTurn, Role


async def append_turn(conversation_id: str, role: Role, text: str) -> ConversationTurn:
    """Append one turn; text is truncated to ``history.max_text_chars``."""
    limit = get_settings().history.max_text_chars
    turn = ConversationTurn(
        conversation_id=conversation_id,
        role=role,
        text=str(text)[:limit],
        timestamp=datetime.now(UTC).isoformat(),
    )
    db = _get_db()
    await db.execute(
        "INSERT INTO chat_history (conversation_id, role, text, timestamp) VALUES (?, ?, ?, ?)",
        (turn.conversation_id, turn.role, turn.text, turn.timestamp),
    )
    await db.commit()
    return turn


async def get_recent_turns(conversation_id: str, limit: int | None = None) -> list[ConversationTurn]:
    """Return the last *limit* turns for a conversation, oldest first."""
    if limit is None:
        limit = get_settings().history.window
    db = _get_db()
    cursor = await db.execute(
        "SELECT conversation_id, role, text, timestamp FROM chat_history "
        "WHERE conversation_id = ? ORDER BY id DESC LIMIT ?",
        (conversation_id, limit),
    )
    rows = await cursor.fetchall()
    return [
        ConversationTurn(
            conversation_id=row["conversation_id"],
            role=row["role"],
            text=row["text"],
            timestamp=row["timestamp"],
        )
        for row in reversed(rows)
    ]


async def clear_history(conversation_id: str) -> int:
    """Delete every turn of a conversation; returns the number of rows removed."""
    db = _get_db()
    cursor = await db.execute(
        "DELETE FROM chat_history WHERE conversation_id = ?", (conversation_id,)
    )
    await db.commit()
    return cursor.rowcount
