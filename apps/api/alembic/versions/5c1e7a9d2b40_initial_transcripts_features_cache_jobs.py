"""initial: transcripts, feature records, llm cache, jobs

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-19 10:12:31.204118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5c1e7a9d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "transcripts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("video_id", sa.String(length=64), nullable=True),
        sa.Column("youtube_url", sa.Text(), nullable=True),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("language", sa.String(length=16), nullable=True),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        sa.Column("transcript_text", sa.Text(), nullable=True),
        sa.Column("srt", sa.Text(), nullable=True),
        sa.Column("segments_json", sa.Text(), nullable=True),
        sa.Column("source_model", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="created"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_transcripts_video_id", "transcripts", ["video_id"])

    op.create_table(
        "feature_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "transcript_id",
            sa.Integer(),
            sa.ForeignKey("transcripts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("content_json", sa.Text(), nullable=False),
        sa.Column("model", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("transcript_id", "kind", name="uq_feature_records_transcript_kind"),
    )
    op.create_index("ix_feature_records_id", "feature_records", ["id"])
    op.create_index("ix_feature_records_transcript_id", "feature_records", ["transcript_id"])
    op.create_index("ix_feature_records_kind", "feature_records", ["kind"])

    op.create_table(
        "llm_cache",
        sa.Column("cache_key", sa.String(length=64), primary_key=True),
        sa.Column("completion", sa.Text(), nullable=False),
        sa.Column("model", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_llm_cache_created_at", "llm_cache", ["created_at"])

    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("job_type", sa.String(length=64), nullable=False),
        sa.Column(
            "transcript_id",
            sa.Integer(),
            sa.ForeignKey("transcripts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="queued"),
        sa.Column("payload_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_jobs_transcript_id", "jobs", ["transcript_id"])


def downgrade() -> None:
    op.drop_index("ix_jobs_transcript_id", table_name="jobs")
    op.drop_table("jobs")
    op.drop_index("ix_llm_cache_created_at", table_name="llm_cache")
    op.drop_table("llm_cache")
    op.drop_index("ix_feature_records_kind", table_name="feature_records")
    op.drop_index("ix_feature_records_transcript_id", table_name="feature_records")
    op.drop_index("ix_feature_records_id", table_name="feature_records")
    op.drop_table("feature_records")
    op.drop_index("ix_transcripts_video_id", table_name="transcripts")
    op.drop_table("transcripts")
