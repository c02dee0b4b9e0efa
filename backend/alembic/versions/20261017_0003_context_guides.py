"""add global and simulation method context guides

Revision ID: 20261017_0003
Revises: 20261017_0002
Create Date: 2026-10-17 00:00:03
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0003"
down_revision: str | None = "20261017_0002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("key", sa.String(length=128), nullable=False),
        sa.Column("value", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "simulation_method_guides",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("method_name", sa.String(length=255), nullable=False),
        sa.Column("context_guide", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "method_name", name="uq_sim_guide_project_method"),
    )
    op.create_index(
        "ix_simulation_method_guides_project_id",
        "simulation_method_guides",
        ["project_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_simulation_method_guides_project_id", table_name="simulation_method_guides")
    op.drop_table("simulation_method_guides")
    op.drop_table("system_settings")
