from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigshift.errors import ExpiredError, InvalidStateError, NotFoundError, OutOfWindowError
from gigshift.models import QRSession, QRSessionScan
from gigshift.services.gigs import (
    GigSchedule,
    normalize_ts,
    require_brand_owner,
    require_gig_schedule,
)
from gigshift.settings import get_settings

logger = logging.getLogger("gigshift.qr_sessions")


def qr_session_window(schedule: GigSchedule) -> tuple[datetime, datetime]:
    window_minutes = max(1, int(get_settings().qr_session_window_minutes))
    window_start = schedule.start_time
    return window_start, window_start + timedelta(minutes=window_minutes)


def checkout_deadline(schedule: GigSchedule) -> datetime:
    grace_hours = max(0.0, float(get_settings().checkout_grace_hours))
    return schedule.scheduled_end + timedelta(hours=grace_hours)


def _new_token() -> str:
    return secrets.token_urlsafe(max(16, int(get_settings().qr_token_bytes)))


def _create_session(
    db: Session,
    *,
    schedule: GigSchedule,
    expires_at: datetime,
    now_utc: datetime,
) -> QRSession:
    qr_session = QRSession(
        gig_id=schedule.gig_id,
        token=_new_token(),
        created_at=now_utc,
        expires_at=expires_at,
        is_active=True,
    )
    db.add(qr_session)
    db.commit()
    db.refresh(qr_session)
    logger.info(
        "qr_session_generated",
        extra={
            "gig_id": schedule.gig_id,
            "qr_session_id": qr_session.id,
            "expires_at": expires_at.isoformat(),
        },
    )
    return qr_session


def _require_window(schedule: GigSchedule, now_utc: datetime) -> datetime:
    window_start, window_end = qr_session_window(schedule)
    if now_utc < window_start or now_utc > window_end:
        raise OutOfWindowError(
            window_start=window_start,
            window_end=window_end,
            current_time=now_utc,
        )
    return window_end


def generate_qr_session(
    db: Session,
    *,
    gig_id: int,
    requester_id: int,
    now_utc: datetime,
) -> QRSession:
    """Open a QR session for the gig, valid until the end of the check-in window.

    The window is closed on both ends. A session generated exactly at the
    window end is stored but already expired, so scans against it fail with
    ``QR_SESSION_EXPIRED``.
    """
    schedule = require_gig_schedule(db, gig_id)
    require_brand_owner(schedule, requester_id)
    if not schedule.is_active:
        raise InvalidStateError("GIG_NOT_ACTIVE", "QR sessions can only be generated for active gigs.")

    now = normalize_ts(now_utc)
    window_end = _require_window(schedule, now)
    # Earlier sessions for the gig stay as they are; clients show the freshest one.
    return _create_session(db, schedule=schedule, expires_at=window_end, now_utc=now)


def get_current_qr_session(
    db: Session,
    *,
    gig_id: int,
    requester_id: int,
    now_utc: datetime,
) -> QRSession:
    schedule = require_gig_schedule(db, gig_id)
    require_brand_owner(schedule, requester_id)
    now = normalize_ts(now_utc)

    current = db.scalar(
        select(QRSession)
        .where(
            QRSession.gig_id == gig_id,
            QRSession.is_active.is_(True),
            QRSession.expires_at > now,
        )
        .order_by(QRSession.created_at.desc(), QRSession.id.desc())
    )
    if current is not None:
        return current

    if not schedule.is_active:
        raise InvalidStateError("GIG_NOT_ACTIVE", "Gig is not active.")
    window_start, window_end = qr_session_window(schedule)
    if now < window_start or now >= window_end:
        raise NotFoundError("QR_SESSION_NOT_FOUND", "No active QR session for this gig.")
    return _create_session(db, schedule=schedule, expires_at=window_end, now_utc=now)


def _resolve_session_by_token(db: Session, token: str) -> QRSession:
    normalized_token = (token or "").strip()
    qr_session = None
    if normalized_token:
        qr_session = db.scalar(select(QRSession).where(QRSession.token == normalized_token))
    if qr_session is None:
        raise NotFoundError("QR_SESSION_NOT_FOUND", "Invalid QR code.")
    return qr_session


def validate_qr_session(db: Session, *, token: str, now_utc: datetime) -> QRSession:
    qr_session = _resolve_session_by_token(db, token)
    now = normalize_ts(now_utc)
    expires_at = normalize_ts(qr_session.expires_at)
    if now >= expires_at:
        raise ExpiredError(
            "QR_SESSION_EXPIRED",
            "QR code has expired.",
            details={"expires_at": expires_at.isoformat()},
        )
    if not qr_session.is_active:
        raise ExpiredError("QR_SESSION_INACTIVE", "QR code has been revoked.")
    return qr_session


def validate_qr_session_for_checkout(db: Session, *, token: str, now_utc: datetime) -> QRSession:
    qr_session = _resolve_session_by_token(db, token)
    if not qr_session.is_active:
        raise ExpiredError("QR_SESSION_INACTIVE", "QR code has been revoked.")

    schedule = require_gig_schedule(db, qr_session.gig_id)
    deadline = checkout_deadline(schedule)
    if normalize_ts(now_utc) >= deadline:
        raise ExpiredError(
            "CHECKOUT_WINDOW_CLOSED",
            "Check-out is no longer possible for this gig.",
            details={"checkout_deadline": deadline.isoformat()},
        )
    return qr_session


def record_qr_scan(
    db: Session,
    *,
    session_id: int,
    usher_id: int,
    now_utc: datetime | None = None,
) -> bool:
    """Add the usher to the session's scanned set. Returns False if already present."""
    if db.get(QRSessionScan, (session_id, usher_id)) is not None:
        return False

    db.add(QRSessionScan(qr_session_id=session_id, usher_id=usher_id, scanned_at=normalize_ts(now_utc)))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def list_scanned_ushers(db: Session, *, session_id: int) -> list[int]:
    return list(
        db.scalars(
            select(QRSessionScan.usher_id)
            .where(QRSessionScan.qr_session_id == session_id)
            .order_by(QRSessionScan.usher_id.asc())
        ).all()
    )


def revoke_qr_session(db: Session, *, session_id: int, requester_id: int) -> QRSession:
    qr_session = db.get(QRSession, session_id)
    if qr_session is None:
        raise NotFoundError("QR_SESSION_NOT_FOUND", "QR session not found.")
    schedule = require_gig_schedule(db, qr_session.gig_id)
    require_brand_owner(schedule, requester_id)

    if qr_session.is_active:
        qr_session.is_active = False
        db.commit()
        logger.info(
            "qr_session_revoked",
            extra={"gig_id": qr_session.gig_id, "qr_session_id": qr_session.id},
        )
    return qr_session
