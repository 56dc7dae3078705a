"""Add domain event outbox

Revision ID: 0002_domain_events_outbox
Revises: 0001_initial
Create Date: 2026-10-09 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_domain_events_outbox"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "domain_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("scheduled_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_domain_events_event_type"), "domain_events", ["event_type"], unique=False)
    op.create_index(op.f("ix_domain_events_scheduled_at_utc"), "domain_events", ["scheduled_at_utc"], unique=False)
    op.create_index(op.f("ix_domain_events_status"), "domain_events", ["status"], unique=False)
    op.create_index(op.f("ix_domain_events_idempotency_key"), "domain_events", ["idempotency_key"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f("ix_domain_events_idempotency_key"), table_name="domain_events")
    op.drop_index(op.f("ix_domain_events_status"), table_name="domain_events")
    op.drop_index(op.f("ix_domain_events_scheduled_at_utc"), table_name="domain_events")
    op.drop_index(op.f("ix_domain_events_event_type"), table_name="domain_events")
    op.drop_table("domain_events")
