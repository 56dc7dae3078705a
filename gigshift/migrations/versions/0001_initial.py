"""Initial attendance and rating schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-01 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

shift_attendance_status = postgresql.ENUM(
    "none",
    "checked_in",
    "checked_out",
    name="shift_attendance_status",
    create_type=False,
)
shift_payout_status = postgresql.ENUM(
    "pending",
    "completed",
    name="shift_payout_status",
    create_type=False,
)
audit_actor_type = postgresql.ENUM(
    "BRAND",
    "USHER",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    shift_attendance_status.create(bind, checkfirst=True)
    shift_payout_status.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "gigs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("brand_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("start_datetime", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_hours", sa.Float(), nullable=False),
        sa.Column("pay_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("duration_hours > 0", name="ck_gigs_duration_positive"),
        sa.CheckConstraint("total_days >= 1", name="ck_gigs_total_days_positive"),
    )
    op.create_index("ix_gigs_brand_id", "gigs", ["brand_id"])

    op.create_table(
        "gig_applications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("gig_id", sa.Integer(), nullable=False),
        sa.Column("usher_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.ForeignKeyConstraint(["gig_id"], ["gigs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("gig_id", "usher_id", name="uq_gig_applications_gig_usher"),
    )
    op.create_index("ix_gig_applications_gig_id", "gig_applications", ["gig_id"])
    op.create_index("ix_gig_applications_usher_id", "gig_applications", ["usher_id"])

    op.create_table(
        "qr_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("gig_id", sa.Integer(), nullable=False),
        sa.Column("token", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.ForeignKeyConstraint(["gig_id"], ["gigs.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_qr_sessions_gig_id", "qr_sessions", ["gig_id"])
    op.create_index("ix_qr_sessions_token", "qr_sessions", ["token"], unique=True)
    op.create_index("ix_qr_sessions_expires_at", "qr_sessions", ["expires_at"])

    op.create_table(
        "qr_session_scans",
        sa.Column("qr_session_id", sa.Integer(), nullable=False),
        sa.Column("usher_id", sa.Integer(), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["qr_session_id"], ["qr_sessions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("qr_session_id", "usher_id"),
    )

    op.create_table(
        "shifts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("gig_id", sa.Integer(), nullable=False),
        sa.Column("usher_id", sa.Integer(), nullable=False),
        sa.Column("qr_session_id", sa.Integer(), nullable=True),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_in_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("check_out_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("hours_worked", sa.Numeric(5, 2), nullable=True),
        sa.Column("payout_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("payout_status", shift_payout_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payout_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "attendance_status",
            shift_attendance_status,
            nullable=False,
            server_default=sa.text("'none'"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["gig_id"], ["gigs.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["qr_session_id"], ["qr_sessions.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("gig_id", "usher_id", name="uq_shifts_gig_usher"),
        sa.CheckConstraint(
            "NOT check_out_verified OR check_in_verified",
            name="ck_shifts_checkout_requires_checkin",
        ),
        sa.CheckConstraint("hours_worked IS NULL OR hours_worked >= 0", name="ck_shifts_hours_non_negative"),
    )
    op.create_index("ix_shifts_gig_id", "shifts", ["gig_id"])
    op.create_index("ix_shifts_usher_id", "shifts", ["usher_id"])

    op.create_table(
        "daily_attendance",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("gig_id", sa.Integer(), nullable=False),
        sa.Column("usher_id", sa.Integer(), nullable=False),
        sa.Column("attendance_date", sa.Date(), nullable=False),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("hours_worked", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("is_present", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["gig_id"], ["gigs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("gig_id", "usher_id", "attendance_date", name="uq_daily_attendance_gig_usher_date"),
    )
    op.create_index("ix_daily_attendance_gig_id", "daily_attendance", ["gig_id"])
    op.create_index("ix_daily_attendance_usher_id", "daily_attendance", ["usher_id"])

    op.create_table(
        "gig_ratings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("gig_id", sa.Integer(), nullable=False),
        sa.Column("usher_id", sa.Integer(), nullable=False),
        sa.Column("brand_rating", sa.Integer(), nullable=False),
        sa.Column("attendance_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_gig_days", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("attendance_rating", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("brand_rating_stars", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("final_rating", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("rating_notes", sa.Text(), nullable=True),
        sa.Column("is_brand_rated", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["gig_id"], ["gigs.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("gig_id", "usher_id", name="uq_gig_ratings_gig_usher"),
        sa.CheckConstraint("brand_rating BETWEEN 1 AND 5", name="ck_gig_ratings_brand_rating_range"),
        sa.CheckConstraint("final_rating BETWEEN 0 AND 5", name="ck_gig_ratings_final_rating_range"),
    )
    op.create_index("ix_gig_ratings_gig_id", "gig_ratings", ["gig_id"])
    op.create_index("ix_gig_ratings_usher_id", "gig_ratings", ["usher_id"])

    op.create_table(
        "usher_aggregates",
        sa.Column("usher_id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("overall_rating", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("attendance_rating_avg", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("brand_rating_avg", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_ratings_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_gigs_completed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("ts_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("ip", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("usher_aggregates")
    op.drop_index("ix_gig_ratings_usher_id", table_name="gig_ratings")
    op.drop_index("ix_gig_ratings_gig_id", table_name="gig_ratings")
    op.drop_table("gig_ratings")
    op.drop_index("ix_daily_attendance_usher_id", table_name="daily_attendance")
    op.drop_index("ix_daily_attendance_gig_id", table_name="daily_attendance")
    op.drop_table("daily_attendance")
    op.drop_index("ix_shifts_usher_id", table_name="shifts")
    op.drop_index("ix_shifts_gig_id", table_name="shifts")
    op.drop_table("shifts")
    op.drop_table("qr_session_scans")
    op.drop_index("ix_qr_sessions_expires_at", table_name="qr_sessions")
    op.drop_index("ix_qr_sessions_token", table_name="qr_sessions")
    op.drop_index("ix_qr_sessions_gig_id", table_name="qr_sessions")
    op.drop_table("qr_sessions")
    op.drop_index("ix_gig_applications_usher_id", table_name="gig_applications")
    op.drop_index("ix_gig_applications_gig_id", table_name="gig_applications")
    op.drop_table("gig_applications")
    op.drop_index("ix_gigs_brand_id", table_name="gigs")
    op.drop_table("gigs")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    shift_payout_status.drop(bind, checkfirst=True)
    shift_attendance_status.drop(bind, checkfirst=True)
