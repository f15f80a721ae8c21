import json

from fastapi.testclient import TestClient

from app.api.deps import get_feature_streamer
from app.main import app
from app.services.feature_stream import FeatureStreamer
from app.services.llm_cache import CompletionCache, MemoryCacheBackend
from app.services.transcript_store import InMemoryTranscriptStore, TranscriptPersistenceHook

client = TestClient(app)

TRANSCRIPT = "Python adalah bahasa yang mudah dibaca. Kita belajar fungsi. Lalu kita belajar kelas."


class ExplodingLlm:
    model = "never"

    async def stream(self, system_prompt, user_content):
        raise AssertionError("LLM must not be called")
        yield ""

    async def complete(self, system_prompt, user_content):
        raise AssertionError("LLM must not be called")


def _override(llm=None, store=None):
    store = store if store is not None else InMemoryTranscriptStore()
    streamer = FeatureStreamer(CompletionCache(MemoryCacheBackend()), llm, on_complete=TranscriptPersistenceHook(store))
    app.dependency_overrides[get_feature_streamer] = lambda: streamer
    return store


def teardown_function():
    app.dependency_overrides.clear()


def test_short_transcript_is_rejected_with_422_before_any_work():
    _override(llm=ExplodingLlm())
    r = client.post("/feature-stream", json={"feature": "summary", "transcript": "short"})
    assert r.status_code == 422


def test_unknown_feature_is_rejected():
    r = client.post("/feature-stream", json={"feature": "poem", "transcript": TRANSCRIPT})
    assert r.status_code == 422


def test_feature_stream_is_ndjson_with_single_terminal_event():
    store = _override()
    r = client.post(
        "/feature-stream",
        json={"feature": "mindmap", "transcript": TRANSCRIPT, "youtube_url": "https://youtu.be/dQw4w9WgXcQ"},
    )
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/x-ndjson")

    events = [json.loads(line) for line in r.text.splitlines() if line.strip()]
    assert all(e["type"] == "token" for e in events[:-1])
    done = events[-1]
    assert done["type"] == "done"
    assert done["feature"] == "mindmap"
    assert done["payload"]["model"] == "stub-no-openai-key"
    assert done["payload"]["mindmap"]["chart"].startswith("mindmap\n")
    assert (done["payload"]["transcriptId"], "mindmap") in store.features


def test_batch_returns_every_requested_feature():
    _override()
    r = client.post(
        "/features/batch",
        json={"features": ["summary", "quiz"], "transcript": TRANSCRIPT, "duration_seconds": 600},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert set(body["results"]) == {"summary", "quiz"}
    assert body["results"]["quiz"]["durationSeconds"] == 600
    assert len(body["results"]["quiz"]["quiz"]["items"]) == 10


def test_batch_validates_transcript():
    r = client.post("/features/batch", json={"features": ["summary"], "transcript": "tiny"})
    assert r.status_code == 422


def test_camel_case_request_fields_are_honoured():
    store = _override()
    r = client.post(
        "/feature-stream",
        json={
            "feature": "quiz",
            "transcript": TRANSCRIPT,
            "durationSeconds": 1200,
            "quizCount": 5,
            "videoId": "dQw4w9WgXcQ",
        },
    )
    done = [json.loads(line) for line in r.text.splitlines() if line.strip()][-1]
    assert done["type"] == "done"
    assert done["payload"]["durationSeconds"] == 1200
    assert len(done["payload"]["quiz"]["items"]) == 5
    tid = done["payload"]["transcriptId"]
    assert store.transcripts[tid]["video_id"] == "dQw4w9WgXcQ"


def test_batch_accepts_camel_case_fields():
    _override()
    r = client.post(
        "/features/batch",
        json={"features": ["quiz"], "transcript": TRANSCRIPT, "durationSeconds": 1200, "quizCount": 3},
    )
    assert r.status_code == 200
    quiz = r.json()["results"]["quiz"]
    assert quiz["durationSeconds"] == 1200
    assert len(quiz["quiz"]["items"]) == 3


SUMMARY_JSON = json.dumps(
    {"summary": {"title": "Python", "overview": "Dasar Python dari fungsi sampai kelas.", "key_points": ["Fungsi"]}}
)


class QaBreaksLlm:
    model = "fake-model"

    async def stream(self, system_prompt, user_content):
        yield ""

    async def complete(self, system_prompt, user_content):
        if '"summary": {' in system_prompt:
            return SUMMARY_JSON
        return "not json"


def test_batch_with_invalid_feature_output_is_502_and_nothing_is_stored():
    store = _override(llm=QaBreaksLlm())
    r = client.post("/features/batch", json={"features": ["summary", "qa"], "transcript": TRANSCRIPT})
    assert r.status_code == 502
    assert store.features == {}
