from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.exceptions import AllSourcesExhausted
from app.db.session import SessionLocal
from app.services.jobs import merge_job_payload, set_job_status
from app.services.transcript import TranscriptOrchestrator
from app.services.transcripts import set_failed, set_ingested
from app.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _fail(db: Session, job_id: int, transcript_id: int, err: str, **extra) -> None:
    set_failed(db, transcript_id, err)
    merge_job_payload(db, job_id, {"progress": {"stage": "failed"}, "error": err, **extra})
    set_job_status(db, job_id, "failed", error=err)


@celery_app.task(name="ingest.youtube_transcript")
def ingest_youtube_transcript(job_id: int, transcript_id: int, video_id: str, language: str | None = None) -> dict:
    """
    Acquire a transcript (speech-to-text -> human captions -> auto captions)
    and store it on the transcript row.
    """
    db: Session = SessionLocal()
    try:
        set_job_status(db, job_id, "running")
        merge_job_payload(
            db,
            job_id,
            {"video_id": video_id, "progress": {"stage": "fetch_transcript"}},
        )

        result = TranscriptOrchestrator().acquire(video_id, language)

        set_ingested(db, transcript_id, result)
        merge_job_payload(
            db,
            job_id,
            {
                "source_model": result.source_model,
                "language": result.language_code,
                "segments": len(result.segments),
                "progress": {"stage": "done"},
            },
        )
        set_job_status(db, job_id, "done")
        return {
            "ok": True,
            "job_id": job_id,
            "transcript_id": transcript_id,
            "source_model": result.source_model,
        }

    except AllSourcesExhausted as e:
        logger.warning("ingest failed job=%s video=%s: %s", job_id, video_id, e)
        _fail(db, job_id, transcript_id, str(e), reasons=[{"strategy": s, "reason": r} for s, r in e.reasons])
        raise
    except Exception as e:
        logger.exception("ingest crashed job=%s video=%s", job_id, video_id)
        _fail(db, job_id, transcript_id, str(e) or e.__class__.__name__)
        raise
    finally:
        db.close()
