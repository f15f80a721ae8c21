import asyncio
from datetime import datetime, timedelta, timezone

from app.db.session import SessionLocal
from app.services.llm_cache import (
    CompletionCache,
    CompletionEntry,
    MemoryCacheBackend,
    SqlCacheBackend,
    compute_cache_key,
)


class BrokenBackend:
    def __init__(self):
        self.calls = 0

    def get(self, key, *, max_age_seconds):
        self.calls += 1
        raise RuntimeError("connection refused")

    def put(self, key, entry):
        self.calls += 1
        raise RuntimeError("connection refused")


def test_cache_key_is_deterministic_and_input_sensitive():
    k = compute_cache_key("A", "B")
    assert k == compute_cache_key("A", "B")
    assert len(k) == 64
    assert compute_cache_key("A", "C") != k
    assert compute_cache_key("X", "B") != k
    assert compute_cache_key("ab", "c") != compute_cache_key("a", "bc")


def test_put_then_get_hits_mirror():
    async def scenario():
        cache = CompletionCache(MemoryCacheBackend())
        miss = await cache.get("sys", "user")
        assert miss.entry is None
        await cache.put(miss.key, CompletionEntry.fresh('{"summary": {}}', "gpt-4o-mini"))
        return await cache.get("sys", "user")

    hit = asyncio.run(scenario())
    assert hit.entry.raw_content == '{"summary": {}}'
    assert hit.entry.model_id == "gpt-4o-mini"


def test_durable_hit_backfills_mirror():
    backend = MemoryCacheBackend()
    key = compute_cache_key("sys", "user")
    backend.put(key, CompletionEntry.fresh("{}", "m"))

    async def scenario():
        cache = CompletionCache(backend)
        first = await cache.get("sys", "user")
        backend.rows.clear()
        second = await cache.get("sys", "user")
        return first, second

    first, second = asyncio.run(scenario())
    assert first.entry is not None
    assert second.entry is not None


def test_entries_expire_after_ttl_in_both_tiers():
    now = [1_000_000.0]
    old = CompletionEntry(
        raw_content="{}",
        model_id="m",
        created_at=datetime.fromtimestamp(now[0], tz=timezone.utc) - timedelta(seconds=10),
    )

    async def scenario():
        cache = CompletionCache(MemoryCacheBackend(), ttl_seconds=60, clock=lambda: now[0])
        key = compute_cache_key("s", "u")
        await cache.put(key, old)
        fresh = await cache.get("s", "u")
        now[0] += 51
        expired = await cache.get("s", "u")
        return fresh, expired

    fresh, expired = asyncio.run(scenario())
    assert fresh.entry is not None
    # mirror is evicted at created_at + ttl; the durable copy is older than the ttl too
    assert expired.entry is None


def test_breaker_trips_once_and_stays_memory_only():
    backend = BrokenBackend()

    async def scenario():
        cache = CompletionCache(backend)
        lookup = await cache.get("s", "u")
        assert cache.durable_enabled is False
        await cache.put(lookup.key, CompletionEntry.fresh("{}", "m"))
        return cache, await cache.get("s", "u")

    cache, hit = asyncio.run(scenario())
    assert backend.calls == 1
    assert hit.entry is not None
    assert cache.durable_enabled is False


def test_sql_backend_round_trip_and_age_filter():
    backend = SqlCacheBackend(SessionLocal)
    key = compute_cache_key("sql-sys", "sql-user")
    backend.put(key, CompletionEntry.fresh('{"qa": {"items": []}}', "gpt-4o-mini"))

    got = backend.get(key, max_age_seconds=3600)
    assert got.raw_content == '{"qa": {"items": []}}'
    assert got.model_id == "gpt-4o-mini"

    stale = CompletionEntry(raw_content="{}", model_id="m", created_at=datetime.now(timezone.utc) - timedelta(hours=2))
    backend.put(key, stale)
    assert backend.get(key, max_age_seconds=3600) is None
