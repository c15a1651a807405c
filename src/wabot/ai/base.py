"""Provider contract and the shared HTTP helper."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp

from wabot.errors import WabotError
from wabot.types import ConversationTurn


class ProviderError(WabotError):
    """The completion backend answered with an error."""


@dataclass
class ReplyRequest:
    system: str
    # Oldest first; the last entry is the user message being answered.
    turns: list[ConversationTurn] = field(default_factory=list)
    conversation_id: str = ""


class AIProvider(Protocol):
    name: str

    async def generate(self, request: ReplyRequest) -> str: ...


def chat_messages(request: ReplyRequest, *, include_system: bool = True) -> list[dict[str, str]]:
    """OpenAI-style ``[{role, content}]`` list."""
    messages: list[dict[str, str]] = []
    if include_system and request.system:
        messages.append({"role": "system", "content": request.system})
    for turn in request.turns:
        role = "assistant" if turn.role == "assistant" else "user"
        messages.append({"role": role, "content": turn.text})
    return messages


async def post_json(
    url: str,
    payload: dict[str, Any],
    *,
    headers: dict[str, str] | None = None,
    timeout: float = 60.0,
) -> Any:
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.post(url, json=payload, headers=headers or {}) as resp:
            if resp.status >= 400:
                body = await resp.text()
                raise ProviderError(f"HTTP {resp.status}: {body[:300]}")
            return await resp.json(content_type=None)
