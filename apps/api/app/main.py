from fastapi import FastAPI
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import build_feature_streamer
from app.api.features import router as features_router
from app.api.jobs import router as jobs_router
from app.api.transcripts import router as transcripts_router
from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal

configure_logging(settings.log_level)

app = FastAPI(title="YouTube Transcript Insights API", version="0.1.0")
app.state.feature_streamer = build_feature_streamer(settings)

app.include_router(features_router)
app.include_router(transcripts_router)
app.include_router(jobs_router)


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    db_ok: bool
    llm_enabled: bool
    cache_durable: bool


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    db_ok = True
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db_ok = False
    finally:
        db.close()

    streamer = app.state.feature_streamer
    return HealthResponse(
        ok=True,
        service="api",
        version=app.version,
        db_ok=db_ok,
        llm_enabled=streamer.llm is not None,
        cache_durable=streamer.cache.durable_enabled,
    )
