from __future__ import annotations

from typing import AsyncIterator, Protocol


class LlmBackend(Protocol):
    """A chat model that answers with a single JSON object."""

    model: str

    def stream(self, system_prompt: str, user_content: str) -> AsyncIterator[str]:
        """
        Yield content deltas in arrival order. Closing the iterator
        (aclose / cancellation) must release the upstream connection.
        """
        ...

    async def complete(self, system_prompt: str, user_content: str) -> str: ...
