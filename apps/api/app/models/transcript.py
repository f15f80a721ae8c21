from datetime import datetime

from sqlalchemy import DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Transcript(Base):
    __tablename__ = "transcripts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # source
    video_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    youtube_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # display/meta
    title: Mapped[str | None] = mapped_column(String(512), nullable=True)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)

    # acquisition outputs
    transcript_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    srt: Mapped[str | None] = mapped_column(Text, nullable=True)
    segments_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string: [{text,start,duration}]
    source_model: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # status
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="created")  # created|ingested|failed
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())
