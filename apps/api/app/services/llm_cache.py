"""
Content-addressed cache for LLM completions.

Two tiers: a durable backend (SQL table `llm_cache`) and an in-process mirror.
Both use the same TTL and both measure it from the entry's `created_at`, so an
entry expires at the same instant in either tier. Any durable failure turns
the durable tier off for the rest of the process: the cache keeps working
from memory and never raises to the caller.
"""
from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from anyio import to_thread
from sqlalchemy.orm import Session

from app.core.exceptions import CacheBackendDegraded
from app.models.llm_cache_entry import LlmCacheEntry

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 60 * 60


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def compute_cache_key(system_prompt: str, user_content: str) -> str:
    """
    sha256 over both inputs. The NUL separator keeps ("ab", "c") and ("a", "bc") apart.
    """
    h = hashlib.sha256()
    h.update((system_prompt or "").encode("utf-8"))
    h.update(b"\x00")
    h.update((user_content or "").encode("utf-8"))
    return h.hexdigest()


@dataclass(frozen=True)
class CompletionEntry:
    raw_content: str
    model_id: str
    created_at: datetime

    @classmethod
    def fresh(cls, raw_content: str, model_id: str) -> "CompletionEntry":
        return cls(raw_content=raw_content, model_id=model_id, created_at=_now())


@dataclass(frozen=True)
class CacheLookup:
    key: str
    entry: CompletionEntry | None


class CacheBackend(Protocol):
    def get(self, key: str, *, max_age_seconds: int) -> CompletionEntry | None: ...

    def put(self, key: str, entry: CompletionEntry) -> None: ...


class MemoryCacheBackend:
    """Durable-tier stand-in with no external storage (tests, local dev)."""

    def __init__(self) -> None:
        self.rows: dict[str, CompletionEntry] = {}

    def get(self, key: str, *, max_age_seconds: int) -> CompletionEntry | None:
        entry = self.rows.get(key)
        if entry is None:
            return None
        if _as_utc(entry.created_at) <= _now() - timedelta(seconds=max_age_seconds):
            return None
        return entry

    def put(self, key: str, entry: CompletionEntry) -> None:
        self.rows[key] = entry


class SqlCacheBackend:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def get(self, key: str, *, max_age_seconds: int) -> CompletionEntry | None:
        cutoff = _now() - timedelta(seconds=max_age_seconds)
        db = self.session_factory()
        try:
            row = (
                db.query(LlmCacheEntry)
                .filter(LlmCacheEntry.cache_key == key, LlmCacheEntry.created_at > cutoff)
                .first()
            )
            if row is None:
                return None
            return CompletionEntry(
                raw_content=row.completion,
                model_id=row.model or "openai-cache",
                created_at=_as_utc(row.created_at),
            )
        finally:
            db.close()

    def put(self, key: str, entry: CompletionEntry) -> None:
        db = self.session_factory()
        try:
            row = db.get(LlmCacheEntry, key)
            if row is None:
                row = LlmCacheEntry(cache_key=key)
                db.add(row)
            row.completion = entry.raw_content
            row.model = entry.model_id
            row.created_at = entry.created_at
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


class CompletionCache:
    """
    Read path: mirror -> durable (entries younger than the TTL) -> miss.
    Write path: mirror + durable.

    Construct once per process and share it; the mirror and the breaker flag
    live on the instance.
    """

    def __init__(
        self,
        backend: CacheBackend | None,
        *,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._mirror: dict[str, tuple[CompletionEntry, float]] = {}
        self._durable_disabled = backend is None

    @property
    def durable_enabled(self) -> bool:
        return not self._durable_disabled

    # -----------------------------
    # Mirror
    # -----------------------------
    def _expires_at(self, entry: CompletionEntry) -> float:
        return _as_utc(entry.created_at).timestamp() + self.ttl_seconds

    def _read_mirror(self, key: str) -> CompletionEntry | None:
        hit = self._mirror.get(key)
        if hit is None:
            return None
        entry, expires_at = hit
        if expires_at <= self._clock():
            del self._mirror[key]
            return None
        return entry

    def _write_mirror(self, key: str, entry: CompletionEntry) -> None:
        self._mirror[key] = (entry, self._expires_at(entry))

    # -----------------------------
    # Durable
    # -----------------------------
    def _trip(self, op: str, err: Exception) -> None:
        self._durable_disabled = True
        logger.warning("llm cache durable %s failed, falling back to memory only: %s", op, err)

    async def _durable_call(self, op: str, fn: Callable[[], object]) -> object:
        try:
            return await to_thread.run_sync(fn)
        except Exception as e:
            raise CacheBackendDegraded(f"{op}: {e}") from e

    async def _read_durable(self, key: str) -> CompletionEntry | None:
        if self._durable_disabled or self.backend is None:
            return None
        backend = self.backend
        try:
            entry = await self._durable_call("get", lambda: backend.get(key, max_age_seconds=self.ttl_seconds))
        except CacheBackendDegraded as e:
            self._trip("get", e)
            return None
        return entry  # type: ignore[return-value]

    async def _write_durable(self, key: str, entry: CompletionEntry) -> None:
        if self._durable_disabled or self.backend is None:
            return
        backend = self.backend
        try:
            await self._durable_call("put", lambda: backend.put(key, entry))
        except CacheBackendDegraded as e:
            self._trip("put", e)

    # -----------------------------
    # Public API
    # -----------------------------
    async def get(self, system_prompt: str, user_content: str) -> CacheLookup:
        key = compute_cache_key(system_prompt, user_content)

        entry = self._read_mirror(key)
        if entry is not None:
            return CacheLookup(key=key, entry=entry)

        entry = await self._read_durable(key)
        if entry is not None:
            self._write_mirror(key, entry)
        return CacheLookup(key=key, entry=entry)

    async def put(self, key: str, entry: CompletionEntry) -> None:
        if not key or not entry.raw_content:
            return
        self._write_mirror(key, entry)
        await self._write_durable(key, entry)
