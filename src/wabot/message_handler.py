"""Inbound message pipeline: history, AI, reply.

Runs in its own task per message (spawned by the session manager). Every
failure is logged here and stops at this message; nothing propagates back
into the session's event handling.
"""

from __future__ import annotations

from typing import Any, Protocol

from wabot.ai import AIProvider, reply_with_ai
from wabot.config import get_settings
from wabot.history import append_turn, get_recent_turns
from wabot.logger import logger
from wabot.stats import BotStats
from wabot.types import InboundMessage


class MessageHandlerDeps(Protocol):
    """Dependencies for message processing."""

    @property
    def stats(self) -> BotStats: ...

    @property
    def ai_provider(self) -> AIProvider: ...

    async def send(self, target: str, text: str) -> Any: ...


def should_answer(message: InboundMessage) -> bool:
    if message.is_from_me:
        return False
    return bool(message.text.strip())


async def handle_inbound(deps: MessageHandlerDeps, message: InboundMessage) -> None:
    if not should_answer(message):
        logger.debug(
            "Message ignored",
            chat_jid=message.chat_jid,
            from_me=message.is_from_me,
            kind=message.kind,
        )
        return

    chat_jid = message.chat_jid
    deps.stats.record_message(chat_jid, message.kind)
    logger.info(
        "New message received",
        chat_jid=chat_jid,
        sender=message.sender_name,
        total_messages=deps.stats.total_messages,
    )

    try:
        await append_turn(chat_jid, "user", message.text)
        history = await get_recent_turns(chat_jid, get_settings().history.window)
        reply = await reply_with_ai(
            deps.ai_provider,
            text=message.text,
            conversation_id=chat_jid,
            history=history,
        )
        deps.stats.record_ai_reply(chat_jid)
        await append_turn(chat_jid, "assistant", reply)
        await deps.send(chat_jid, reply)
    except Exception:
        logger.exception("Failed to answer message", chat_jid=chat_jid, message_id=message.id)
        return
    logger.info("Reply sent", chat_jid=chat_jid, chars=len(reply))
