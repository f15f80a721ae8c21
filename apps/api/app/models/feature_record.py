from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from app.db.base import Base


class FeatureRecord(Base):
    __tablename__ = "feature_records"
    __table_args__ = (UniqueConstraint("transcript_id", "kind", name="uq_feature_records_transcript_kind"),)

    id = Column(Integer, primary_key=True, index=True)
    transcript_id = Column(Integer, ForeignKey("transcripts.id", ondelete="CASCADE"), nullable=False, index=True)

    # summary | qa | mindmap | quiz
    kind = Column(String(32), nullable=False, index=True)

    content_json = Column(Text, nullable=False)  # JSON string
    model = Column(String(128), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    transcript = relationship("Transcript", backref="features")
