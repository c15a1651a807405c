"""AI reply generation.

The provider is chosen by ``ai.provider`` in config. ``reply_with_ai`` never
raises: provider failures become a short apology so the chat always gets
an answer.
"""

from __future__ import annotations

from datetime import UTC, datetime

from wabot.ai.anthropic import AnthropicProvider
from wabot.ai.base import AIProvider, ProviderError, ReplyRequest
from wabot.ai.gemini import GeminiProvider
from wabot.ai.local import LocalProvider
from wabot.ai.openai import OpenAIProvider
from wabot.config import Settings, get_settings
from wabot.logger import logger
from wabot.types import ConversationTurn

EMPTY_REPLY_FALLBACK = "Could you say that again, please?"
ERROR_REPLY_FALLBACK = "I can't think right now. Please try again in a moment."

__all__ = [
    "AIProvider",
    "EMPTY_REPLY_FALLBACK",
    "ERROR_REPLY_FALLBACK",
    "ProviderError",
    "ReplyRequest",
    "create_provider",
    "reply_with_ai",
]


def _secret(value) -> str | None:
    return value.get_secret_value() if value is not None else None


def create_provider(settings: Settings | None = None) -> AIProvider:
    s = settings or get_settings()
    cfg = s.ai
    match cfg.provider:
        case "openai":
            return OpenAIProvider(cfg, _secret(s.secrets.openai_api_key))
        case "anthropic":
            return AnthropicProvider(cfg, _secret(s.secrets.anthropic_api_key))
        case "local":
            return LocalProvider(cfg)
        case _:
            return GeminiProvider(cfg, _secret(s.secrets.google_api_key))


async def reply_with_ai(
    provider: AIProvider,
    *,
    text: str,
    conversation_id: str,
    history: list[ConversationTurn],
    system: str | None = None,
) -> str:
    """Ask *provider* for a reply to *text* given the prior *history*.

    *history* may already end with the message being answered (the
    pipeline stores it before asking); it is not repeated in that case.
    """
    turns = list(history)
    if not turns or turns[-1].role != "user" or turns[-1].text != text:
        turns.append(
            ConversationTurn(
                conversation_id=conversation_id,
                role="user",
                text=text or "",
                timestamp=datetime.now(UTC).isoformat(),
            )
        )
    request = ReplyRequest(
        system=system if system is not None else get_settings().ai.system_prompt,
        turns=turns,
        conversation_id=conversation_id,
    )
    try:
        out = await provider.generate(request)
    except Exception as exc:
        logger.error("AI provider failed", provider=provider.name, err=str(exc))
        return ERROR_REPLY_FALLBACK
    reply = (out or "").strip()
    return reply or EMPTY_REPLY_FALLBACK
