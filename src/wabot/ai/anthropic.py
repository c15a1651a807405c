"""Anthropic Messages provider."""

from __future__ import annotations

from wabot.ai.base import ReplyRequest, post_json
from wabot.config import AIConfig
from wabot.logger import logger

_ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
_ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider:
    name = "anthropic"

    def __init__(self, config: AIConfig, api_key: str | None) -> None:
        if not api_key:
            logger.warning("Anthropic provider selected but ANTHROPIC_API_KEY is missing")
        self._config = config
        self._api_key = api_key or ""

    async def generate(self, request: ReplyRequest) -> str:
        messages = [
            {
                "role": "assistant" if t.role == "assistant" else "user",
                "content": [{"type": "text", "text": t.text}],
            }
            for t in request.turns
        ]
        data = await post_json(
            _ANTHROPIC_URL,
            {
                "model": self._config.anthropic_model,
                "system": request.system,
                "messages": messages,
                "max_tokens": self._config.max_tokens,
                "temperature": self._config.temperature,
            },
            headers={
                "x-api-key": self._api_key,
                "anthropic-version": _ANTHROPIC_VERSION,
            },
            timeout=self._config.timeout_seconds,
        )
        return "".join(
            block.get("text", "") for block in data.get("content") or [] if block.get("type") == "text"
        )
