"""Read-only lookups against data owned by the gig-management service.

Gig schedules and application approvals are written elsewhere; this module is
the only place the attendance and rating code reads them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigshift.errors import AccessDeniedError, NotFoundError
from gigshift.models import ApplicationStatus, Gig, GigApplication, GigStatus


def normalize_ts(ts_utc: datetime | None) -> datetime:
    if ts_utc is None:
        return datetime.now(timezone.utc)

    if ts_utc.tzinfo is None:
        return ts_utc.replace(tzinfo=timezone.utc)

    return ts_utc.astimezone(timezone.utc)


@dataclass(frozen=True)
class GigSchedule:
    gig_id: int
    brand_id: int
    title: str
    start_time: datetime
    duration_hours: float
    pay_rate: float
    total_gig_days: int
    status: str

    @property
    def is_active(self) -> bool:
        return self.status == GigStatus.ACTIVE.value

    @property
    def scheduled_end(self) -> datetime:
        return self.start_time + timedelta(hours=self.duration_hours)


def _schedule_from_row(gig: Gig) -> GigSchedule:
    return GigSchedule(
        gig_id=gig.id,
        brand_id=gig.brand_id,
        title=gig.title or "",
        start_time=normalize_ts(gig.start_datetime),
        duration_hours=float(gig.duration_hours),
        pay_rate=float(gig.pay_rate),
        total_gig_days=max(1, int(gig.total_days or 1)),
        status=str(gig.status),
    )


def get_gig_schedule(db: Session, gig_id: int) -> GigSchedule | None:
    gig = db.get(Gig, gig_id)
    if gig is None:
        return None
    return _schedule_from_row(gig)


def require_gig_schedule(db: Session, gig_id: int) -> GigSchedule:
    schedule = get_gig_schedule(db, gig_id)
    if schedule is None:
        raise NotFoundError("GIG_NOT_FOUND", "Gig not found.")
    return schedule


def require_brand_owner(schedule: GigSchedule, requester_id: int) -> None:
    if schedule.brand_id != requester_id:
        raise AccessDeniedError("NOT_GIG_OWNER", "Only the brand that owns this gig can do this.")


def is_approved_for_gig(db: Session, gig_id: int, usher_id: int) -> bool:
    application_id = db.scalar(
        select(GigApplication.id).where(
            GigApplication.gig_id == gig_id,
            GigApplication.usher_id == usher_id,
            GigApplication.status == ApplicationStatus.APPROVED.value,
        )
    )
    return application_id is not None
