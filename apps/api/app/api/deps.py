from fastapi import Request

from app.core.config import Settings
from app.db.session import SessionLocal
from app.services.feature_stream import FeatureStreamer
from app.services.llm import build_llm_backend
from app.services.llm_cache import CompletionCache, SqlCacheBackend
from app.services.transcript_store import SqlTranscriptStore, TranscriptPersistenceHook


def build_feature_streamer(cfg: Settings) -> FeatureStreamer:
    """
    One streamer per app: the cache mirror and its breaker live on it.
    """
    cache = CompletionCache(SqlCacheBackend(SessionLocal), ttl_seconds=cfg.llm_cache_ttl_sec)
    hook = TranscriptPersistenceHook(SqlTranscriptStore(SessionLocal))
    return FeatureStreamer(cache, build_llm_backend(cfg), on_complete=hook)


def get_feature_streamer(request: Request) -> FeatureStreamer:
    return request.app.state.feature_streamer
