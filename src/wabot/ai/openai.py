"""OpenAI Chat Completions provider."""

from __future__ import annotations

from wabot.ai.base import ReplyRequest, chat_messages, post_json
from wabot.config import AIConfig
from wabot.logger import logger

_OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider:
    name = "openai"

    def __init__(self, config: AIConfig, api_key: str | None) -> None:
        if not api_key:
            logger.warning("OpenAI provider selected but OPENAI_API_KEY is missing")
        self._config = config
        self._api_key = api_key or ""

    async def generate(self, request: ReplyRequest) -> str:
        data = await post_json(
            _OPENAI_URL,
            {
                "model": self._config.openai_model,
                "messages": chat_messages(request),
                "temperature": self._config.temperature,
            },
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=self._config.timeout_seconds,
        )
        choices = data.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""
