from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class LlmCacheEntry(Base):
    __tablename__ = "llm_cache"

    # sha256 hex of (system prompt, user content)
    cache_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    completion: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # written from python (not server_default) so the freshness window compares like with like
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
