import os

from celery import Celery

# importing config loads apps/api/.env for the worker too
from app.core.config import settings
from app.core.logging import configure_logging

configure_logging(settings.log_level)


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v and v.strip() else default


BROKER_URL = _env("CELERY_BROKER_URL") or _env("REDIS_URL") or "redis://localhost:6379/0"
RESULT_BACKEND = _env("CELERY_RESULT_BACKEND") or BROKER_URL

# the worker entrypoint looks up `celery_app` by name
celery_app = Celery(
    "transcript_insights",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
    include=["app.worker.ingest_tasks"],
)

celery_app.conf.update(
    task_track_started=True,
    result_extended=True,
    enable_utc=True,
    timezone="UTC",
)

if settings.env == "test":
    # run tasks inline; no broker in tests
    celery_app.conf.update(
        task_always_eager=True,
        task_eager_propagates=False,
        broker_url="memory://",
        result_backend="cache+memory://",
    )

__all__ = ["celery_app"]
