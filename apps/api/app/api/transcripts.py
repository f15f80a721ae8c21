import json

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.feature_record import FeatureRecord
from app.models.transcript import Transcript
from app.services.jobs import create_job
from app.services.transcripts import create_transcript, load_segments
from app.services.youtube import build_video_url, extract_youtube_video_id
from app.worker.ingest_tasks import ingest_youtube_transcript

router = APIRouter(prefix="/transcripts", tags=["transcripts"])


class TranscriptFromYoutubeRequest(BaseModel):
    url: str
    language: str | None = None
    prompt: str | None = None


class TranscriptFromYoutubeResponse(BaseModel):
    ok: bool
    transcript_id: int
    job_id: int
    task_id: str
    video_id: str


@router.post("/from-youtube", response_model=TranscriptFromYoutubeResponse)
def create_from_youtube(req: TranscriptFromYoutubeRequest, db: Session = Depends(get_db)) -> TranscriptFromYoutubeResponse:
    video_id = extract_youtube_video_id(req.url)
    if not video_id:
        raise HTTPException(status_code=400, detail="Not a YouTube video URL")

    t = create_transcript(
        db,
        video_id=video_id,
        youtube_url=build_video_url(video_id),
        language=req.language,
        prompt=req.prompt,
    )
    job = create_job(
        db,
        "ingest_youtube_transcript",
        {"video_id": video_id, "language": req.language, "progress": {"stage": "queued"}},
        transcript_id=t.id,
    )
    async_result = ingest_youtube_transcript.delay(job.id, t.id, video_id, req.language)

    return TranscriptFromYoutubeResponse(
        ok=True,
        transcript_id=t.id,
        job_id=job.id,
        task_id=async_result.id,
        video_id=video_id,
    )


@router.get("")
def list_transcripts(
    db: Session = Depends(get_db),
    q: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    query = db.query(Transcript)

    if status:
        query = query.filter(Transcript.status == status)

    if q and q.strip():
        s = f"%{q.strip()}%"
        query = query.filter(
            or_(
                Transcript.title.ilike(s),
                Transcript.youtube_url.ilike(s),
                Transcript.video_id.ilike(s),
            )
        )

    total = query.count()
    rows = query.order_by(Transcript.id.desc()).offset(offset).limit(limit).all()

    return {
        "ok": True,
        "total": total,
        "limit": limit,
        "offset": offset,
        "items": [
            {
                "id": t.id,
                "video_id": t.video_id,
                "youtube_url": t.youtube_url,
                "title": t.title,
                "language": t.language,
                "status": t.status,
                "source_model": t.source_model,
                "duration_seconds": t.duration_seconds,
                "created_at": t.created_at.isoformat() if t.created_at else None,
            }
            for t in rows
        ],
    }


@router.get("/{transcript_id}")
def get_transcript(transcript_id: int, db: Session = Depends(get_db)):
    t = db.get(Transcript, transcript_id)
    if not t:
        raise HTTPException(status_code=404, detail="Transcript not found")

    features = (
        db.query(FeatureRecord)
        .filter(FeatureRecord.transcript_id == transcript_id)
        .order_by(FeatureRecord.kind.asc())
        .all()
    )

    return {
        "ok": True,
        "transcript": {
            "id": t.id,
            "video_id": t.video_id,
            "youtube_url": t.youtube_url,
            "title": t.title,
            "language": t.language,
            "prompt": t.prompt,
            "status": t.status,
            "error": t.error,
            "source_model": t.source_model,
            "duration_seconds": t.duration_seconds,
            "text": t.transcript_text,
            "srt": t.srt,
            "segments": load_segments(t),
        },
        "features": {
            f.kind: {"model": f.model, "content": json.loads(f.content_json)} for f in features
        },
    }
