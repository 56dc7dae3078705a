from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigshift.errors import ValidationFailedError
from gigshift.models import PayoutStatus, Shift
from gigshift.services.gigs import normalize_ts

logger = logging.getLogger("gigshift.payouts")


def compute_payout(hours_worked: float, pay_rate: float) -> float:
    """Pay for a shift. ``hours_worked`` is expected to be capped by the caller."""
    if hours_worked < 0:
        raise ValidationFailedError("INVALID_HOURS_WORKED", "Hours worked cannot be negative.")
    if pay_rate < 0:
        raise ValidationFailedError("INVALID_PAY_RATE", "Pay rate cannot be negative.")
    return round(float(hours_worked) * float(pay_rate), 2)


def settle_gig_payouts(db: Session, *, gig_id: int, now_utc: datetime) -> list[Shift]:
    """Mark every fully verified, still pending shift of the gig as paid out.

    Shifts that are already completed are not selected, so running this twice
    settles nothing the second time.
    """
    settled_at = normalize_ts(now_utc)
    shifts = list(
        db.scalars(
            select(Shift)
            .where(
                Shift.gig_id == gig_id,
                Shift.check_in_verified.is_(True),
                Shift.check_out_verified.is_(True),
                Shift.payout_status == PayoutStatus.PENDING,
            )
            .order_by(Shift.id.asc())
            .with_for_update()
        ).all()
    )
    for shift in shifts:
        shift.payout_status = PayoutStatus.COMPLETED
        shift.payout_date = settled_at
    db.commit()

    if shifts:
        logger.info(
            "gig_payouts_settled",
            extra={
                "gig_id": gig_id,
                "settled_shifts": len(shifts),
                "total_payout": round(sum(float(item.payout_amount or 0) for item in shifts), 2),
            },
        )
    return shifts
