from __future__ import annotations

import json
from typing import Any, AsyncIterator, Dict

import httpx


class OllamaClient:
    """
    Local generation through Ollama's /api/chat with JSON mode.
    """

    def __init__(self, base_url: str, *, model: str, timeout_s: float = 120.0, temperature: float = 0.2) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s
        self.temperature = temperature

    def _payload(self, system_prompt: str, user_content: str, *, stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            "stream": stream,
            "format": "json",
            "options": {"temperature": self.temperature},
        }

    async def stream(self, system_prompt: str, user_content: str) -> AsyncIterator[str]:
        url = f"{self.base_url}/api/chat"
        payload = self._payload(system_prompt, user_content, stream=True)

        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            async with client.stream("POST", url, json=payload) as r:
                r.raise_for_status()
                # one JSON object per line: {"message": {"content": "..."}, "done": false}
                async for line in r.aiter_lines():
                    if not line.strip():
                        continue
                    data = json.loads(line)
                    piece = (data.get("message") or {}).get("content") or ""
                    if piece:
                        yield piece
                    if data.get("done"):
                        break

    async def complete(self, system_prompt: str, user_content: str) -> str:
        url = f"{self.base_url}/api/chat"
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            r = await client.post(url, json=self._payload(system_prompt, user_content, stream=False))
            r.raise_for_status()
            data = r.json()

        # Ollama returns {"message": {"content": "..."}, ...}
        return ((data.get("message") or {}).get("content") or "").strip()
