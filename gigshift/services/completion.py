from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from gigshift.services.attendance import attendance_days_by_usher, build_daily_attendance
from gigshift.services.gigs import normalize_ts, require_brand_owner, require_gig_schedule
from gigshift.services.payouts import settle_gig_payouts
from gigshift.services.ratings import apply_attendance, recompute_aggregate

logger = logging.getLogger("gigshift.completion")


@dataclass(frozen=True)
class GigCompletionSummary:
    gig_id: int
    completed_shifts: int
    total_payout: float
    attendance_records: int
    rated_ushers: list[int] = field(default_factory=list)


def complete_gig(
    db: Session,
    *,
    gig_id: int,
    requester_id: int,
    now_utc: datetime | None = None,
) -> GigCompletionSummary:
    """Settle payouts and derive attendance ratings for a finished gig.

    Safe to run more than once: shifts already paid out are skipped and the
    attendance and rating rows are upserts recomputed from the same facts.
    """
    schedule = require_gig_schedule(db, gig_id)
    require_brand_owner(schedule, requester_id)
    now = normalize_ts(now_utc)

    settled = settle_gig_payouts(db, gig_id=gig_id, now_utc=now)
    attendance_rows = build_daily_attendance(db, gig_id=gig_id)

    days_by_usher = attendance_days_by_usher(db, gig_id=gig_id)
    rated_ushers: list[int] = []
    for usher_id in sorted(days_by_usher):
        apply_attendance(
            db,
            gig_id=gig_id,
            usher_id=usher_id,
            attendance_days=days_by_usher[usher_id],
            total_gig_days=schedule.total_gig_days,
        )
        recompute_aggregate(db, usher_id=usher_id)
        rated_ushers.append(usher_id)

    summary = GigCompletionSummary(
        gig_id=gig_id,
        completed_shifts=len(settled),
        total_payout=round(sum(float(shift.payout_amount or 0) for shift in settled), 2),
        attendance_records=len(attendance_rows),
        rated_ushers=rated_ushers,
    )
    logger.info(
        "gig_completed",
        extra={
            "gig_id": gig_id,
            "completed_shifts": summary.completed_shifts,
            "total_payout": summary.total_payout,
            "attendance_records": summary.attendance_records,
            "rated_ushers": len(rated_ushers),
        },
    )
    return summary
