from __future__ import annotations

import itertools
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from anyio import to_thread
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.exceptions import TranscriptIdentityUnresolvable
from app.models.feature_record import FeatureRecord
from app.models.transcript import Transcript
from app.services.features import FeatureRequest

logger = logging.getLogger(__name__)


class TranscriptStore(Protocol):
    def exists(self, transcript_id: int) -> bool: ...

    def find_by_video(self, video_id: str | None, youtube_url: str | None) -> int | None: ...

    def create(
        self,
        *,
        video_id: str | None,
        youtube_url: str | None,
        text: str,
        duration_seconds: float | None,
    ) -> int: ...

    def upsert_feature(self, transcript_id: int, kind: str, result: dict[str, Any], model: str) -> None: ...


# ----------------------------
# SQL
# ----------------------------

class SqlTranscriptStore:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def exists(self, transcript_id: int) -> bool:
        db = self.session_factory()
        try:
            return db.get(Transcript, transcript_id) is not None
        finally:
            db.close()

    def find_by_video(self, video_id: str | None, youtube_url: str | None) -> int | None:
        conds = []
        if video_id:
            conds.append(Transcript.video_id == video_id)
        if youtube_url:
            conds.append(Transcript.youtube_url == youtube_url)
        if not conds:
            return None

        db = self.session_factory()
        try:
            row = db.query(Transcript).filter(or_(*conds)).order_by(Transcript.id.desc()).first()
            return row.id if row else None
        finally:
            db.close()

    def create(
        self,
        *,
        video_id: str | None,
        youtube_url: str | None,
        text: str,
        duration_seconds: float | None,
    ) -> int:
        db = self.session_factory()
        try:
            t = Transcript(
                video_id=video_id,
                youtube_url=youtube_url,
                transcript_text=text,
                duration_seconds=duration_seconds,
                status="ingested",
            )
            db.add(t)
            db.commit()
            db.refresh(t)
            return t.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def upsert_feature(self, transcript_id: int, kind: str, result: dict[str, Any], model: str) -> None:
        db = self.session_factory()
        try:
            rec = (
                db.query(FeatureRecord)
                .filter(FeatureRecord.transcript_id == transcript_id, FeatureRecord.kind == kind)
                .first()
            )
            if not rec:
                rec = FeatureRecord(transcript_id=transcript_id, kind=kind)
                db.add(rec)

            rec.content_json = json.dumps(result, ensure_ascii=False)
            rec.model = model
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


# ----------------------------
# In-memory (tests, local dev without a database)
# ----------------------------

@dataclass
class InMemoryTranscriptStore:
    transcripts: dict[int, dict[str, Any]] = field(default_factory=dict)
    features: dict[tuple[int, str], dict[str, Any]] = field(default_factory=dict)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def exists(self, transcript_id: int) -> bool:
        return transcript_id in self.transcripts

    def find_by_video(self, video_id: str | None, youtube_url: str | None) -> int | None:
        for tid in sorted(self.transcripts, reverse=True):
            row = self.transcripts[tid]
            if (video_id and row["video_id"] == video_id) or (youtube_url and row["youtube_url"] == youtube_url):
                return tid
        return None

    def create(
        self,
        *,
        video_id: str | None,
        youtube_url: str | None,
        text: str,
        duration_seconds: float | None,
    ) -> int:
        tid = next(self._ids)
        self.transcripts[tid] = {
            "video_id": video_id,
            "youtube_url": youtube_url,
            "text": text,
            "duration_seconds": duration_seconds,
        }
        return tid

    def upsert_feature(self, transcript_id: int, kind: str, result: dict[str, Any], model: str) -> None:
        self.features[(transcript_id, kind)] = {"result": result, "model": model}


# ----------------------------
# Identity + hook
# ----------------------------

def resolve_transcript_id(store: TranscriptStore, req: FeatureRequest) -> int:
    """
    explicit id -> existing transcript for the same video id / url -> new row from the text.
    """
    if req.transcript_id is not None:
        if not store.exists(req.transcript_id):
            raise TranscriptIdentityUnresolvable(f"Transcript not found: {req.transcript_id}")
        return req.transcript_id

    found = store.find_by_video(req.video_id, req.youtube_url)
    if found is not None:
        return found

    return store.create(
        video_id=req.video_id,
        youtube_url=req.youtube_url,
        text=req.transcript,
        duration_seconds=req.duration_seconds,
    )


class TranscriptPersistenceHook:
    """
    Called once per successful generation. Returns the transcript id the
    result was stored under, or None when the identity could not be resolved.
    """

    def __init__(self, store: TranscriptStore) -> None:
        self.store = store
        # serializes identity resolution so concurrent features of one video share a row
        self._lock = threading.Lock()

    def _persist(self, req: FeatureRequest, kind: str, result: dict[str, Any], model: str) -> int | None:
        try:
            with self._lock:
                tid = resolve_transcript_id(self.store, req)
        except TranscriptIdentityUnresolvable as e:
            logger.warning("feature %s not persisted: %s", kind, e)
            return None
        self.store.upsert_feature(tid, kind, result, model)
        return tid

    async def __call__(self, req: FeatureRequest, kind: str, result: dict[str, Any], model: str) -> int | None:
        return await to_thread.run_sync(lambda: self._persist(req, kind, result, model))
