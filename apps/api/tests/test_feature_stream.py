import asyncio
import json

import pytest

from app.core.exceptions import GenerationJsonInvalid
from app.services.feature_stream import (
    CHUNK_SIZE,
    DoneEvent,
    ErrorEvent,
    FeatureStreamer,
    TokenEvent,
    encode_ndjson,
)
from app.services.features import FeatureRequest, build_feature_prompt
from app.services.llm_cache import CompletionCache, CompletionEntry, MemoryCacheBackend
from app.services.transcript_store import InMemoryTranscriptStore, TranscriptPersistenceHook

TRANSCRIPT = "Python adalah bahasa yang mudah dibaca. Kita belajar fungsi. Lalu kita belajar kelas."

SUMMARY_JSON = json.dumps(
    {
        "summary": {
            "title": "Dasar Python",
            "overview": "Video ini membahas dasar-dasar Python mulai dari fungsi sampai kelas dengan contoh.",
            "key_points": ["Fungsi", "Kelas"],
            "takeaways": ["Latihan rutin"],
        }
    }
)
QA_JSON = json.dumps({"qa": {"items": [{"question": "Apa itu fungsi?", "answer": "Blok kode bernama."}]}})


class FakeLlm:
    model = "fake-model"

    def __init__(self, chunks=None, responses=None):
        self.chunks = chunks or []
        self.responses = responses or {}
        self.calls = 0
        self.closed = False

    async def stream(self, system_prompt, user_content):
        self.calls += 1
        try:
            for c in self.chunks:
                yield c
        finally:
            self.closed = True

    async def complete(self, system_prompt, user_content):
        self.calls += 1
        for marker, body in self.responses.items():
            if f'"{marker}": {{' in system_prompt:
                return body
        return "{}"


def _streamer(llm, store=None, cache=None):
    store = store if store is not None else InMemoryTranscriptStore()
    cache = cache or CompletionCache(MemoryCacheBackend())
    return FeatureStreamer(cache, llm, on_complete=TranscriptPersistenceHook(store)), store, cache


def _collect(streamer, req):
    async def run():
        return [ev async for ev in streamer.stream(req)]

    return asyncio.run(run())


def _req(**kw):
    base = dict(feature="summary", transcript=TRANSCRIPT, video_id="dQw4w9WgXcQ")
    base.update(kw)
    return FeatureRequest(**base)


def test_live_stream_relays_tokens_persists_and_caches():
    chunks = [SUMMARY_JSON[:25], SUMMARY_JSON[25:90], SUMMARY_JSON[90:]]
    llm = FakeLlm(chunks=chunks)
    streamer, store, cache = _streamer(llm)

    events = _collect(streamer, _req())

    assert [e.token for e in events[:-1]] == chunks
    done = events[-1]
    assert isinstance(done, DoneEvent)
    assert done.feature == "summary"
    assert done.payload["model"] == "fake-model"
    assert done.payload["summary"]["title"] == "Dasar Python"
    tid = done.payload["transcriptId"]
    assert store.features[(tid, "summary")]["model"] == "fake-model"
    assert store.transcripts[tid]["video_id"] == "dQw4w9WgXcQ"

    built = build_feature_prompt(_req())
    lookup = asyncio.run(cache.get(built.system_prompt, built.user_content))
    assert lookup.entry.raw_content == SUMMARY_JSON


def test_cache_replay_sends_fixed_size_tokens_without_calling_llm():
    llm = FakeLlm(chunks=["should not be used"])
    streamer, store, cache = _streamer(llm)
    built = build_feature_prompt(_req())

    async def seed():
        lookup = await cache.get(built.system_prompt, built.user_content)
        await cache.put(lookup.key, CompletionEntry.fresh(SUMMARY_JSON, "gpt-4o-mini"))

    asyncio.run(seed())
    events = _collect(streamer, _req())

    tokens = [e.token for e in events if isinstance(e, TokenEvent)]
    assert "".join(tokens) == SUMMARY_JSON
    assert all(len(t) == CHUNK_SIZE for t in tokens[:-1])
    assert len(tokens[-1]) <= CHUNK_SIZE
    assert llm.calls == 0
    assert sum(1 for e in events if isinstance(e, (DoneEvent, ErrorEvent))) == 1
    assert events[-1].payload["model"] == "gpt-4o-mini"


def test_unparsable_cached_entry_falls_back_to_live():
    llm = FakeLlm(chunks=[SUMMARY_JSON])
    streamer, _, cache = _streamer(llm)
    built = build_feature_prompt(_req())

    async def seed():
        lookup = await cache.get(built.system_prompt, built.user_content)
        await cache.put(lookup.key, CompletionEntry.fresh("{broken", "gpt-4o-mini"))

    asyncio.run(seed())
    events = _collect(streamer, _req())

    assert llm.calls == 1
    assert events[-1].payload["model"] == "fake-model"


def test_invalid_live_json_yields_error_without_persist_or_cache_write():
    llm = FakeLlm(chunks=['{"summary": ', '{"title": '])
    streamer, store, cache = _streamer(llm)

    events = _collect(streamer, _req())

    assert isinstance(events[-1], ErrorEvent)
    assert "JSON" in events[-1].message
    assert sum(1 for e in events if isinstance(e, (DoneEvent, ErrorEvent))) == 1
    assert store.features == {}
    built = build_feature_prompt(_req())
    assert asyncio.run(cache.get(built.system_prompt, built.user_content)).entry is None


def test_stub_path_without_llm():
    streamer, store, _ = _streamer(None)

    events = _collect(streamer, _req(feature="quiz", duration_seconds=20 * 60))

    done = events[-1]
    assert isinstance(done, DoneEvent)
    assert done.payload["model"] == "stub-no-openai-key"
    assert done.payload["durationSeconds"] == 1200
    tokens = "".join(e.token for e in events[:-1])
    assert json.loads(tokens) == done.payload["quiz"]
    assert len(done.payload["quiz"]["items"]) == 15


def test_client_disconnect_closes_upstream_and_skips_persistence():
    llm = FakeLlm(chunks=["{", '"summary"', ": {}}"])
    streamer, store, cache = _streamer(llm)

    async def run():
        agen = streamer.stream(_req())
        first = await agen.__anext__()
        await agen.aclose()
        return first

    first = asyncio.run(run())
    assert first.token == "{"
    assert llm.closed is True
    assert store.features == {}
    assert store.transcripts == {}


def test_unknown_explicit_transcript_id_still_generates():
    llm = FakeLlm(chunks=[SUMMARY_JSON])
    streamer, store, _ = _streamer(llm)

    events = _collect(streamer, _req(transcript_id=999))

    done = events[-1]
    assert isinstance(done, DoneEvent)
    assert "transcriptId" not in done.payload
    assert store.features == {}


def test_encode_ndjson_emits_lines_and_stops_after_terminal():
    async def events():
        yield TokenEvent("ab")
        yield ErrorEvent("boom")
        yield TokenEvent("never")

    async def run():
        return [chunk async for chunk in encode_ndjson(events())]

    out = asyncio.run(run())
    assert [json.loads(line) for line in out] == [
        {"type": "token", "token": "ab"},
        {"type": "error", "message": "boom"},
    ]
    assert all(line.endswith(b"\n") for line in out)


def test_batch_generates_every_feature_for_one_transcript():
    llm = FakeLlm(responses={"summary": SUMMARY_JSON, "qa": QA_JSON})
    streamer, store, _ = _streamer(llm)

    results = asyncio.run(streamer.generate_batch(["summary", "qa"], _req()))

    assert set(results) == {"summary", "qa"}
    assert results["qa"]["qa"]["items"][0]["question"] == "Apa itu fungsi?"
    assert results["summary"]["transcriptId"] == results["qa"]["transcriptId"]
    assert len(store.transcripts) == 1


def test_batch_failure_persists_and_caches_nothing():
    llm = FakeLlm(responses={"summary": SUMMARY_JSON, "qa": "not json"})
    backend = MemoryCacheBackend()
    streamer, store, _ = _streamer(llm, cache=CompletionCache(backend))

    with pytest.raises(GenerationJsonInvalid):
        asyncio.run(streamer.generate_batch(["summary", "qa"], _req()))

    assert store.features == {}
    assert store.transcripts == {}
    assert backend.rows == {}


class SlowSummaryLlm(FakeLlm):
    def __init__(self):
        super().__init__()
        self.summary_cancelled = False
        self.summary_waiting = asyncio.Event()

    async def complete(self, system_prompt, user_content):
        if '"summary": {' in system_prompt:
            self.summary_waiting.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.summary_cancelled = True
                raise
            return SUMMARY_JSON
        await self.summary_waiting.wait()
        return "not json"


def test_batch_failure_cancels_features_still_running():
    llm = SlowSummaryLlm()
    streamer, store, _ = _streamer(llm)

    with pytest.raises(GenerationJsonInvalid):
        asyncio.run(streamer.generate_batch(["summary", "qa"], _req()))

    assert llm.summary_cancelled is True
    assert store.features == {}
