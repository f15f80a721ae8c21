from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.job import Job
from app.services.jobs import get_job_payload

router = APIRouter(prefix="/jobs", tags=["jobs"])


class JobGetResponse(BaseModel):
    ok: bool
    job_id: int
    job_type: str
    transcript_id: int | None
    status: str
    error: str | None
    payload: dict[str, Any]


@router.get("/{job_id}", response_model=JobGetResponse)
def get_job(job_id: int, db: Session = Depends(get_db)) -> JobGetResponse:
    job = db.get(Job, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    return JobGetResponse(
        ok=True,
        job_id=job.id,
        job_type=job.job_type,
        transcript_id=job.transcript_id,
        status=job.status,
        error=job.error,
        payload=get_job_payload(job),
    )
