"""create cadences and entity sharing

Revision ID: 202610180002
Revises: 202610180001
Create Date: 2026-10-18 00:02:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610180002"
down_revision: str | None = "202610180001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "crm_cadence",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("objective", sa.Text(), nullable=True),
        sa.Column("duration_days", sa.Integer(), nullable=False, server_default="14"),
        sa.Column("icp_id", sa.Uuid(), sa.ForeignKey("crm_icp.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("crm_user.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "crm_cadence_step",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "cadence_id",
            sa.Uuid(),
            sa.ForeignKey("crm_cadence.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_crm_cadence_step_schedule",
        "crm_cadence_step",
        ["cadence_id", "day_number", "order"],
        unique=False,
    )

    op.create_table(
        "crm_lead_cadence",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("lead_id", sa.Uuid(), sa.ForeignKey("crm_lead.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "cadence_id",
            sa.Uuid(),
            sa.ForeignKey("crm_cadence.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_step", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("crm_user.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_crm_lead_cadence_lead_cadence_status",
        "crm_lead_cadence",
        ["lead_id", "cadence_id", "status"],
        unique=False,
    )

    op.create_table(
        "crm_lead_cadence_activity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "lead_cadence_id",
            sa.Uuid(),
            sa.ForeignKey("crm_lead_cadence.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "cadence_step_id",
            sa.Uuid(),
            sa.ForeignKey("crm_cadence_step.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "activity_id",
            sa.Uuid(),
            sa.ForeignKey("crm_activity.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_cadence_id", "cadence_step_id", name="uq_crm_lead_cadence_activity_step"),
    )

    op.create_table(
        "crm_shared_entity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column(
            "shared_with_user_id",
            sa.Uuid(),
            sa.ForeignKey("crm_user.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "shared_by_user_id",
            sa.Uuid(),
            sa.ForeignKey("crm_user.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "entity_type",
            "entity_id",
            "shared_with_user_id",
            name="uq_crm_shared_entity_target",
        ),
    )
    op.create_index(
        "ix_crm_shared_entity_lookup",
        "crm_shared_entity",
        ["entity_type", "entity_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_crm_shared_entity_lookup", table_name="crm_shared_entity")
    op.drop_table("crm_shared_entity")
    op.drop_table("crm_lead_cadence_activity")
    op.drop_index("ix_crm_lead_cadence_lead_cadence_status", table_name="crm_lead_cadence")
    op.drop_table("crm_lead_cadence")
    op.drop_index("ix_crm_cadence_step_schedule", table_name="crm_cadence_step")
    op.drop_table("crm_cadence_step")
    op.drop_table("crm_cadence")
