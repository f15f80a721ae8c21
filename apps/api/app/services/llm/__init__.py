from __future__ import annotations

from app.core.config import Settings, settings as default_settings
from app.services.llm.base import LlmBackend


def build_llm_backend(cfg: Settings = default_settings) -> LlmBackend | None:
    """
    None means "no credentials": callers fall back to stub insights.
    """
    if cfg.llm_provider == "ollama":
        from app.services.llm.ollama_client import OllamaClient

        return OllamaClient(cfg.ollama_base_url, model=cfg.ollama_model, timeout_s=cfg.openai_timeout_sec)

    if not cfg.openai_api_key:
        return None

    from app.services.llm.openai_client import OpenAIJsonClient

    return OpenAIJsonClient(cfg)


__all__ = ["LlmBackend", "build_llm_backend"]
