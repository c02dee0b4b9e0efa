"""add phase output tables and usage ledger

Revision ID: 20261017_0002
Revises: 20261017_0001
Create Date: 2026-10-17 00:00:02
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0002"
down_revision: str | None = "20261017_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "evidence",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("document_id", sa.Integer(), nullable=True),
        sa.Column("competency_id", sa.String(length=128), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("key_behavior_id", sa.String(length=255), nullable=False),
        sa.Column("quote", sa.Text(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=False, server_default=""),
        sa.Column("source", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("is_contra_indicator", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_ai_generated", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["document_id"], ["source_documents.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_evidence_report_id", "evidence", ["report_id"], unique=False)
    op.create_index("ix_evidence_document_id", "evidence", ["document_id"], unique=False)
    op.create_index("ix_evidence_competency_id", "evidence", ["competency_id"], unique=False)
    op.create_index("ix_evidence_key_behavior_id", "evidence", ["key_behavior_id"], unique=False)

    op.create_table(
        "key_behavior_analyses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("competency_id", sa.String(length=128), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("key_behavior_id", sa.String(length=255), nullable=False),
        sa.Column("key_behavior_text", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=False, server_default=""),
        sa.Column("evidence_ids_json", sa.JSON(), nullable=False),
        sa.Column("evaluated", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("report_id", "key_behavior_id", name="uq_kb_analysis_report_kb"),
    )
    op.create_index("ix_key_behavior_analyses_report_id", "key_behavior_analyses", ["report_id"], unique=False)
    op.create_index(
        "ix_key_behavior_analyses_competency_id",
        "key_behavior_analyses",
        ["competency_id"],
        unique=False,
    )

    op.create_table(
        "competency_analyses",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("competency_id", sa.String(length=128), nullable=False),
        sa.Column("competency_name", sa.String(length=255), nullable=False),
        sa.Column("target_level", sa.Integer(), nullable=False),
        sa.Column("achieved_level", sa.Integer(), nullable=False),
        sa.Column("explanation", sa.Text(), nullable=False, server_default=""),
        sa.Column("development_recommendations", sa.Text(), nullable=True),
        sa.Column("recommendations_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("report_id", "competency_id", name="uq_competency_analysis_report_comp"),
    )
    op.create_index("ix_competency_analyses_report_id", "competency_analyses", ["report_id"], unique=False)

    op.create_table(
        "executive_summaries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=False),
        sa.Column("overview", sa.Text(), nullable=False, server_default=""),
        sa.Column("strengths", sa.Text(), nullable=False, server_default=""),
        sa.Column("weaknesses", sa.Text(), nullable=False, server_default=""),
        sa.Column("recommendations", sa.Text(), nullable=False, server_default=""),
        sa.Column("draft_json", sa.JSON(), nullable=False),
        sa.Column("critique_applied", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("report_id"),
    )

    op.create_table(
        "usage_log_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_id", sa.Integer(), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("model_id", sa.String(length=255), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("is_fallback", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("input_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("output_tokens", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("input_cost_per_million", sa.Numeric(12, 4), nullable=False, server_default=sa.text("0")),
        sa.Column("output_cost_per_million", sa.Numeric(12, 4), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_usd", sa.Numeric(18, 8), nullable=False, server_default=sa.text("0")),
        sa.Column("duration_ms", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("outcome", sa.String(length=16), nullable=False),
        sa.Column("error_code", sa.String(length=64), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("prompt_snapshot", sa.Text(), nullable=True),
        sa.Column("response_snapshot", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_usage_log_entries_report_id", "usage_log_entries", ["report_id"], unique=False)
    op.create_index("ix_usage_log_entries_project_id", "usage_log_entries", ["project_id"], unique=False)
    op.create_index("ix_usage_log_entries_action", "usage_log_entries", ["action"], unique=False)
    op.create_index("ix_usage_log_entries_model_id", "usage_log_entries", ["model_id"], unique=False)
    op.create_index("ix_usage_log_entries_outcome", "usage_log_entries", ["outcome"], unique=False)
    op.create_index("ix_usage_log_entries_created_at", "usage_log_entries", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_usage_log_entries_created_at", table_name="usage_log_entries")
    op.drop_index("ix_usage_log_entries_outcome", table_name="usage_log_entries")
    op.drop_index("ix_usage_log_entries_model_id", table_name="usage_log_entries")
    op.drop_index("ix_usage_log_entries_action", table_name="usage_log_entries")
    op.drop_index("ix_usage_log_entries_project_id", table_name="usage_log_entries")
    op.drop_index("ix_usage_log_entries_report_id", table_name="usage_log_entries")
    op.drop_table("usage_log_entries")
    op.drop_table("executive_summaries")
    op.drop_index("ix_competency_analyses_report_id", table_name="competency_analyses")
    op.drop_table("competency_analyses")
    op.drop_index("ix_key_behavior_analyses_competency_id", table_name="key_behavior_analyses")
    op.drop_index("ix_key_behavior_analyses_report_id", table_name="key_behavior_analyses")
    op.drop_table("key_behavior_analyses")
    op.drop_index("ix_evidence_key_behavior_id", table_name="evidence")
    op.drop_index("ix_evidence_competency_id", table_name="evidence")
    op.drop_index("ix_evidence_document_id", table_name="evidence")
    op.drop_index("ix_evidence_report_id", table_name="evidence")
    op.drop_table("evidence")
