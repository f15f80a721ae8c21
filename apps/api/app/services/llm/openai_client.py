from __future__ import annotations

from typing import AsyncIterator

from openai import AsyncOpenAI

from app.core.config import Settings
from app.core.exceptions import LlmUnavailable


def _messages(system_prompt: str, user_content: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


class OpenAIJsonClient:
    """
    Chat Completions in JSON mode, streamed or one-shot.

    The SDK already retries transient failures (OPENAI_MAX_RETRIES); nothing
    here retries on top of that.
    """

    def __init__(self, cfg: Settings, *, client: AsyncOpenAI | None = None) -> None:
        if client is None and not cfg.openai_api_key:
            raise LlmUnavailable("OPENAI_API_KEY is missing")

        self.model = cfg.openai_model
        self._client = client or AsyncOpenAI(
            api_key=cfg.openai_api_key,
            timeout=cfg.openai_timeout_sec,
            max_retries=cfg.openai_max_retries,
        )

    async def stream(self, system_prompt: str, user_content: str) -> AsyncIterator[str]:
        stream = await self._client.chat.completions.create(
            model=self.model,
            messages=_messages(system_prompt, user_content),
            response_format={"type": "json_object"},
            temperature=0.3,
            stream=True,
        )
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                piece = chunk.choices[0].delta.content or ""
                if piece:
                    yield piece
        finally:
            # releases the HTTP connection when the caller disconnects mid-stream
            await stream.close()

    async def complete(self, system_prompt: str, user_content: str) -> str:
        chat = await self._client.chat.completions.create(
            model=self.model,
            messages=_messages(system_prompt, user_content),
            response_format={"type": "json_object"},
            temperature=0.3,
        )
        return (chat.choices[0].message.content or "").strip()
