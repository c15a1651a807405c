"""Google Gemini provider.

The conversation is flattened into one prompt (SYSTEM/USER/ASSISTANT lines)
and sent as a single user content block.
"""

from __future__ import annotations

from wabot.ai.base import ReplyRequest, post_json
from wabot.config import AIConfig
from wabot.logger import logger

_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def build_prompt(request: ReplyRequest) -> str:
    parts: list[str] = []
    if request.system:
        parts.append(f"SYSTEM: {request.system}")
    for turn in request.turns:
        role = "ASSISTANT" if turn.role == "assistant" else "USER"
        parts.append(f"{role}: {turn.text}")
    parts.append("ASSISTANT:")
    return "\n".join(parts)


class GeminiProvider:
    name = "gemini"

    def __init__(self, config: AIConfig, api_key: str | None) -> None:
        if not api_key:
            logger.warning("Gemini provider selected but GOOGLE_API_KEY is missing")
        self._config = config
        self._api_key = api_key or ""

    async def generate(self, request: ReplyRequest) -> str:
        data = await post_json(
            _GEMINI_URL.format(model=self._config.gemini_model),
            {"contents": [{"role": "user", "parts": [{"text": build_prompt(request)}]}]},
            headers={"x-goog-api-key": self._api_key},
            timeout=self._config.timeout_seconds,
        )
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts)
