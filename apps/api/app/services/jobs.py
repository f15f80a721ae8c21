import json
from typing import Any

from sqlalchemy.orm import Session

from app.models.job import Job

JOB_STATUSES = ("queued", "running", "done", "failed")


def _load_payload(job: Job) -> dict[str, Any]:
    try:
        data = json.loads(job.payload_json or "{}")
    except json.JSONDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def create_job(
    db: Session,
    job_type: str,
    payload: dict[str, Any] | None = None,
    *,
    transcript_id: int | None = None,
) -> Job:
    job = Job(
        job_type=job_type,
        transcript_id=transcript_id,
        status="queued",
        payload_json=json.dumps(payload or {}, ensure_ascii=False),
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def set_job_status(db: Session, job_id: int, status: str, error: str | None = None) -> Job:
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown job status: {status!r}")
    job = db.query(Job).filter(Job.id == job_id).one()
    job.status = status
    job.error = error
    db.commit()
    db.refresh(job)
    return job


def get_job_payload(job: Job) -> dict[str, Any]:
    return _load_payload(job)


def merge_job_payload(db: Session, job_id: int, patch: dict[str, Any]) -> Job:
    """
    Shallow merge: keys in `patch` overwrite, everything else is kept.
    """
    job = db.query(Job).filter(Job.id == job_id).one()
    base = _load_payload(job)
    base.update(patch or {})
    job.payload_json = json.dumps(base, ensure_ascii=False)
    db.commit()
    db.refresh(job)
    return job
