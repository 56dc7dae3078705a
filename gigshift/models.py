from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gigshift.db import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class GigStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AttendanceStatus(str, enum.Enum):
    NONE = "none"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class ScanAction(str, enum.Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class AuditActorType(str, enum.Enum):
    BRAND = "BRAND"
    USHER = "USHER"
    SYSTEM = "SYSTEM"


class Gig(Base):
    """Gig schedule row. Written by the gig-management service, read-only here."""

    __tablename__ = "gigs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    brand_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    start_datetime: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_hours: Mapped[float] = mapped_column(Float, nullable=False)
    pay_rate: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GigStatus.ACTIVE.value,
        server_default=text("'active'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    applications: Mapped[list[GigApplication]] = relationship(back_populates="gig")
    qr_sessions: Mapped[list[QRSession]] = relationship(back_populates="gig")
    shifts: Mapped[list[Shift]] = relationship(back_populates="gig")


class GigApplication(Base):
    """Usher application to a gig. Approval is decided outside this service."""

    __tablename__ = "gig_applications"
    __table_args__ = (UniqueConstraint("gig_id", "usher_id", name="uq_gig_applications_gig_usher"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    usher_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApplicationStatus.PENDING.value,
        server_default=text("'pending'"),
    )

    gig: Mapped[Gig] = relationship(back_populates="applications")


class QRSession(Base):
    __tablename__ = "qr_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))

    gig: Mapped[Gig] = relationship(back_populates="qr_sessions")
    scans: Mapped[list[QRSessionScan]] = relationship(
        back_populates="qr_session",
        cascade="all, delete-orphan",
    )


class QRSessionScan(Base):
    """One row per (session, usher): the session's scanned-by set."""

    __tablename__ = "qr_session_scans"

    qr_session_id: Mapped[int] = mapped_column(
        ForeignKey("qr_sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    usher_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    qr_session: Mapped[QRSession] = relationship(back_populates="scans")


class Shift(Base):
    __tablename__ = "shifts"
    __table_args__ = (UniqueConstraint("gig_id", "usher_id", name="uq_shifts_gig_usher"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    usher_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    qr_session_id: Mapped[int | None] = mapped_column(
        ForeignKey("qr_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_in_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    check_out_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    hours_worked: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    payout_amount: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    payout_status: Mapped[PayoutStatus] = mapped_column(
        Enum(PayoutStatus, name="shift_payout_status", values_callable=_enum_values),
        nullable=False,
        default=PayoutStatus.PENDING,
        server_default=text("'pending'"),
    )
    payout_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    attendance_status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus, name="shift_attendance_status", values_callable=_enum_values),
        nullable=False,
        default=AttendanceStatus.NONE,
        server_default=text("'none'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    gig: Mapped[Gig] = relationship(back_populates="shifts")
    qr_session: Mapped[QRSession | None] = relationship()


class DailyAttendance(Base):
    __tablename__ = "daily_attendance"
    __table_args__ = (
        UniqueConstraint("gig_id", "usher_id", "attendance_date", name="uq_daily_attendance_gig_usher_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    usher_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hours_worked: Mapped[float] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    is_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class GigRating(Base):
    __tablename__ = "gig_ratings"
    __table_args__ = (UniqueConstraint("gig_id", "usher_id", name="uq_gig_ratings_gig_usher"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    usher_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    brand_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    attendance_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_gig_days: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    attendance_rating: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False, default=0.0)
    brand_rating_stars: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False, default=0.0)
    final_rating: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False, default=0.0)
    rating_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_brand_rated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )

    gig: Mapped[Gig] = relationship()


class UsherAggregate(Base):
    __tablename__ = "usher_aggregates"

    usher_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    overall_rating: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False, default=0.0)
    attendance_rating_avg: Mapped[float] = mapped_column(
        Numeric(3, 2, asdecimal=False),
        nullable=False,
        default=0.0,
    )
    brand_rating_avg: Mapped[float] = mapped_column(Numeric(3, 2, asdecimal=False), nullable=False, default=0.0)
    total_ratings_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    total_gigs_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class DomainEvent(Base):
    __tablename__ = "domain_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    scheduled_at_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="PENDING",
        server_default=text("'PENDING'"),
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=_utcnow,
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip: Mapped[str | None] = mapped_column(String(128), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
