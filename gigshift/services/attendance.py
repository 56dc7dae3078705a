from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigshift.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from gigshift.models import AttendanceStatus, DailyAttendance, PayoutStatus, ScanAction, Shift
from gigshift.services.events import EVENT_ATTENDANCE_RECORDED, emit_event
from gigshift.services.gigs import is_approved_for_gig, normalize_ts, require_gig_schedule
from gigshift.services.payouts import compute_payout
from gigshift.services.qr_sessions import (
    record_qr_scan,
    validate_qr_session,
    validate_qr_session_for_checkout,
)
from gigshift.settings import get_attendance_timezone

logger = logging.getLogger("gigshift.attendance")


@dataclass(frozen=True)
class ShiftSnapshot:
    shift_id: int
    gig_id: int
    usher_id: int
    attendance_status: AttendanceStatus
    check_in_time: datetime | None
    check_out_time: datetime | None
    check_in_verified: bool
    check_out_verified: bool
    hours_worked: float | None
    payout_amount: float | None
    payout_status: PayoutStatus

    @classmethod
    def from_shift(cls, shift: Shift) -> ShiftSnapshot:
        return cls(
            shift_id=shift.id,
            gig_id=shift.gig_id,
            usher_id=shift.usher_id,
            attendance_status=AttendanceStatus(shift.attendance_status),
            check_in_time=normalize_ts(shift.check_in_time) if shift.check_in_time else None,
            check_out_time=normalize_ts(shift.check_out_time) if shift.check_out_time else None,
            check_in_verified=bool(shift.check_in_verified),
            check_out_verified=bool(shift.check_out_verified),
            hours_worked=float(shift.hours_worked) if shift.hours_worked is not None else None,
            payout_amount=float(shift.payout_amount) if shift.payout_amount is not None else None,
            payout_status=PayoutStatus(shift.payout_status),
        )


def cap_hours_worked(check_in_time: datetime, check_out_time: datetime, duration_hours: float) -> float:
    elapsed_hours = (normalize_ts(check_out_time) - normalize_ts(check_in_time)).total_seconds() / 3600
    capped = min(max(0.0, elapsed_hours), float(duration_hours))
    # Stored with two decimals; rounding must not push the value past the cap.
    return min(round(capped, 2), float(duration_hours))


def _resolve_shift(db: Session, *, gig_id: int, usher_id: int) -> Shift | None:
    return db.scalar(select(Shift).where(Shift.gig_id == gig_id, Shift.usher_id == usher_id))


def _require_approved(db: Session, *, gig_id: int, usher_id: int) -> None:
    if not is_approved_for_gig(db, gig_id, usher_id):
        raise ForbiddenError("NOT_APPROVED_FOR_GIG", "You are not approved for this gig.")


def _compare_and_set_shift(
    db: Session,
    *,
    shift: Shift,
    expected_status: AttendanceStatus,
    values: dict[str, Any],
) -> bool:
    result = db.execute(
        update(Shift)
        .where(Shift.id == shift.id, Shift.attendance_status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        return False
    db.commit()
    db.refresh(shift)
    return True


def _record_scan_best_effort(db: Session, *, session_id: int, usher_id: int, now_utc: datetime) -> None:
    try:
        record_qr_scan(db, session_id=session_id, usher_id=usher_id, now_utc=now_utc)
    except Exception:
        db.rollback()
        logger.exception(
            "qr_scan_record_failed",
            extra={"qr_session_id": session_id, "usher_id": usher_id},
        )


def _emit_attendance_recorded(db: Session, *, shift: Shift, action: ScanAction, now_utc: datetime) -> None:
    emit_event(
        db,
        event_type=EVENT_ATTENDANCE_RECORDED,
        payload={
            "gig_id": shift.gig_id,
            "usher_id": shift.usher_id,
            "shift_id": shift.id,
            "action": action.value,
            "ts_utc": now_utc.isoformat(),
            "hours_worked": float(shift.hours_worked) if shift.hours_worked is not None else None,
            "payout_amount": float(shift.payout_amount) if shift.payout_amount is not None else None,
        },
        idempotency_key=f"{EVENT_ATTENDANCE_RECORDED}:{shift.id}:{action.value}",
        now_utc=now_utc,
    )


def check_in(db: Session, *, token: str, usher_id: int, now_utc: datetime) -> Shift:
    now = normalize_ts(now_utc)
    qr_session = validate_qr_session(db, token=token, now_utc=now)
    gig_id = qr_session.gig_id
    _require_approved(db, gig_id=gig_id, usher_id=usher_id)

    checkin_values: dict[str, Any] = {
        "qr_session_id": qr_session.id,
        "check_in_time": now,
        "check_in_verified": True,
        "attendance_status": AttendanceStatus.CHECKED_IN,
    }
    shift = _resolve_shift(db, gig_id=gig_id, usher_id=usher_id)
    if shift is None:
        shift = Shift(
            gig_id=gig_id,
            usher_id=usher_id,
            payout_status=PayoutStatus.PENDING,
            **checkin_values,
        )
        db.add(shift)
        try:
            db.commit()
        except IntegrityError:
            # Another check-in for the same usher created the shift first.
            db.rollback()
            raise ConflictError("ALREADY_CHECKED_IN", "Already checked in for this gig.") from None
    else:
        if shift.attendance_status == AttendanceStatus.CHECKED_IN:
            raise ConflictError("ALREADY_CHECKED_IN", "Already checked in for this gig.")
        if shift.attendance_status == AttendanceStatus.CHECKED_OUT:
            raise ConflictError("SHIFT_CLOSED", "Shift for this gig is already closed.")
        if not _compare_and_set_shift(
            db,
            shift=shift,
            expected_status=AttendanceStatus.NONE,
            values=checkin_values,
        ):
            raise ConflictError("ALREADY_CHECKED_IN", "Already checked in for this gig.")

    _record_scan_best_effort(db, session_id=qr_session.id, usher_id=usher_id, now_utc=now)
    _emit_attendance_recorded(db, shift=shift, action=ScanAction.CHECK_IN, now_utc=now)
    logger.info(
        "shift_checked_in",
        extra={"gig_id": gig_id, "usher_id": usher_id, "shift_id": shift.id},
    )
    return shift


def check_out(db: Session, *, token: str, usher_id: int, now_utc: datetime) -> Shift:
    now = normalize_ts(now_utc)
    qr_session = validate_qr_session_for_checkout(db, token=token, now_utc=now)
    gig_id = qr_session.gig_id
    schedule = require_gig_schedule(db, gig_id)
    _require_approved(db, gig_id=gig_id, usher_id=usher_id)

    shift = _resolve_shift(db, gig_id=gig_id, usher_id=usher_id)
    if shift is None or shift.attendance_status == AttendanceStatus.NONE or shift.check_in_time is None:
        raise ConflictError("CHECKIN_REQUIRED", "Must check in before checking out.")
    if shift.attendance_status == AttendanceStatus.CHECKED_OUT:
        raise ConflictError("ALREADY_CHECKED_OUT", "Already checked out for this gig.")

    hours_worked = cap_hours_worked(shift.check_in_time, now, schedule.duration_hours)
    payout_amount = compute_payout(hours_worked, schedule.pay_rate)
    if not _compare_and_set_shift(
        db,
        shift=shift,
        expected_status=AttendanceStatus.CHECKED_IN,
        values={
            "check_out_time": now,
            "check_out_verified": True,
            "hours_worked": hours_worked,
            "payout_amount": payout_amount,
            "attendance_status": AttendanceStatus.CHECKED_OUT,
        },
    ):
        raise ConflictError("ALREADY_CHECKED_OUT", "Already checked out for this gig.")

    _record_scan_best_effort(db, session_id=qr_session.id, usher_id=usher_id, now_utc=now)
    _emit_attendance_recorded(db, shift=shift, action=ScanAction.CHECK_OUT, now_utc=now)
    logger.info(
        "shift_checked_out",
        extra={
            "gig_id": gig_id,
            "usher_id": usher_id,
            "shift_id": shift.id,
            "hours_worked": hours_worked,
            "payout_amount": payout_amount,
        },
    )
    return shift


def scan(
    db: Session,
    *,
    token: str,
    usher_id: int,
    action: ScanAction | str,
    now_utc: datetime,
) -> ShiftSnapshot:
    try:
        resolved_action = ScanAction(action)
    except ValueError:
        raise ValidationFailedError(
            "INVALID_ACTION",
            "Action must be either 'check_in' or 'check_out'.",
        ) from None

    if resolved_action == ScanAction.CHECK_IN:
        shift = check_in(db, token=token, usher_id=usher_id, now_utc=now_utc)
    else:
        shift = check_out(db, token=token, usher_id=usher_id, now_utc=now_utc)
    return ShiftSnapshot.from_shift(shift)


def get_shift_snapshot(db: Session, *, gig_id: int, usher_id: int) -> ShiftSnapshot:
    shift = _resolve_shift(db, gig_id=gig_id, usher_id=usher_id)
    if shift is None:
        raise NotFoundError("SHIFT_NOT_FOUND", "No shift recorded for this usher on this gig.")
    return ShiftSnapshot.from_shift(shift)


def _local_day(ts_utc: datetime) -> date:
    return normalize_ts(ts_utc).astimezone(get_attendance_timezone()).date()


def build_daily_attendance(db: Session, *, gig_id: int) -> list[DailyAttendance]:
    shifts = list(
        db.scalars(
            select(Shift)
            .where(Shift.gig_id == gig_id, Shift.check_in_verified.is_(True))
            .order_by(Shift.id.asc())
        ).all()
    )
    rows: list[DailyAttendance] = []
    for shift in shifts:
        if shift.check_in_time is None:
            continue
        attendance_date = _local_day(shift.check_in_time)
        row = db.scalar(
            select(DailyAttendance).where(
                DailyAttendance.gig_id == gig_id,
                DailyAttendance.usher_id == shift.usher_id,
                DailyAttendance.attendance_date == attendance_date,
            )
        )
        if row is None:
            row = DailyAttendance(gig_id=gig_id, usher_id=shift.usher_id, attendance_date=attendance_date)
            db.add(row)
        row.check_in_time = normalize_ts(shift.check_in_time)
        row.check_out_time = normalize_ts(shift.check_out_time) if shift.check_out_time else None
        row.hours_worked = float(shift.hours_worked or 0.0)
        row.is_present = bool(shift.check_in_verified)
        rows.append(row)
    db.commit()
    return rows


def attendance_days_by_usher(db: Session, *, gig_id: int) -> dict[int, int]:
    rows = db.execute(
        select(DailyAttendance.usher_id, func.count(DailyAttendance.id))
        .where(DailyAttendance.gig_id == gig_id, DailyAttendance.is_present.is_(True))
        .group_by(DailyAttendance.usher_id)
    ).all()
    return {int(usher_id): int(days) for usher_id, days in rows}

