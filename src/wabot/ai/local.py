"""Self-hosted model behind a plain JSON endpoint."""

from __future__ import annotations

import json

from wabot.ai.base import ReplyRequest, chat_messages, post_json
from wabot.config import AIConfig
from wabot.logger import logger

NOT_CONFIGURED_REPLY = "The local AI provider is not configured."


class LocalProvider:
    name = "local"

    def __init__(self, config: AIConfig) -> None:
        self._config = config

    async def generate(self, request: ReplyRequest) -> str:
        url = self._config.local_url
        if not url:
            logger.warning("Local provider selected but ai.local_url is not set")
            return NOT_CONFIGURED_REPLY
        data = await post_json(
            url,
            {"model": self._config.local_model, "messages": chat_messages(request)},
            timeout=self._config.timeout_seconds,
        )
        if isinstance(data, dict):
            reply = data.get("reply") or data.get("output")
            if reply:
                return str(reply)
        return json.dumps(data)
