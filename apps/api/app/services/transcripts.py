import json

from sqlalchemy.orm import Session

from app.models.transcript import Transcript
from app.services.transcript_result import TranscriptResult


def create_transcript(
    db: Session,
    *,
    video_id: str | None,
    youtube_url: str | None,
    language: str | None,
    prompt: str | None = None,
) -> Transcript:
    t = Transcript(
        video_id=video_id,
        youtube_url=youtube_url,
        language=language,
        prompt=prompt,
        status="created",
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def set_ingested(db: Session, transcript_id: int, result: TranscriptResult, *, title: str | None = None) -> Transcript:
    t = db.query(Transcript).filter(Transcript.id == transcript_id).one()
    t.title = title or t.title
    t.transcript_text = result.text
    t.srt = result.srt
    t.segments_json = json.dumps(result.segments_as_dicts(), ensure_ascii=False)
    t.language = result.language_code or t.language
    t.duration_seconds = result.video_duration_seconds
    t.source_model = result.source_model
    t.status = "ingested"
    t.error = None
    db.commit()
    db.refresh(t)
    return t


def set_failed(db: Session, transcript_id: int, error: str) -> Transcript:
    t = db.query(Transcript).filter(Transcript.id == transcript_id).one()
    t.status = "failed"
    t.error = error
    db.commit()
    db.refresh(t)
    return t


def load_segments(t: Transcript) -> list[dict]:
    if not t.segments_json:
        return []
    data = json.loads(t.segments_json)
    return data if isinstance(data, list) else []
