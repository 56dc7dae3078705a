from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from statistics import mean
from uuid import uuid4

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigshift.errors import ForbiddenError, NotFoundError, ValidationFailedError
from gigshift.models import (
    ApplicationStatus,
    AttendanceStatus,
    Gig,
    GigApplication,
    GigRating,
    PayoutStatus,
    Shift,
    UsherAggregate,
)
from gigshift.services.attendance import attendance_days_by_usher
from gigshift.services.events import EVENT_RATING_SUBMITTED, emit_event
from gigshift.services.gigs import (
    is_approved_for_gig,
    normalize_ts,
    require_brand_owner,
    require_gig_schedule,
)
from gigshift.settings import get_settings

logger = logging.getLogger("gigshift.ratings")

MAX_ATTENDANCE_STARS = 2.0
MAX_BRAND_STARS = 3.0
MAX_FINAL_RATING = MAX_ATTENDANCE_STARS + MAX_BRAND_STARS


@dataclass(frozen=True)
class RatingCalculation:
    attendance_days: int
    total_gig_days: int
    brand_rating: int
    attendance_rating: float
    brand_rating_stars: float
    final_rating: float


@dataclass(frozen=True)
class RatingBreakdown:
    five_stars: int = 0
    four_stars: int = 0
    three_stars: int = 0
    two_stars: int = 0
    one_star: int = 0


@dataclass(frozen=True)
class UsherRatingStats:
    usher_id: int
    overall_rating: float
    attendance_rating: float
    brand_rating: float
    total_ratings: int
    completed_gigs: int
    attendance_percentage: float
    rating_breakdown: RatingBreakdown


@dataclass(frozen=True)
class RatingHistoryEntry:
    rating_id: int
    gig_id: int
    gig_title: str
    gig_start: datetime
    brand_rating: int
    is_brand_rated: bool
    attendance_days: int
    total_gig_days: int
    attendance_rating: float
    brand_rating_stars: float
    final_rating: float
    rating_notes: str | None
    created_at: datetime


@dataclass(frozen=True)
class RosterEntry:
    usher_id: int
    attendance_status: AttendanceStatus
    check_in_time: datetime | None
    check_out_time: datetime | None
    hours_worked: float | None
    payout_amount: float | None
    payout_status: PayoutStatus | None
    attendance_days: int
    is_brand_rated: bool
    brand_rating: int | None
    final_rating: float | None
    rating_notes: str | None


def calculate_rating(attendance_days: int, total_gig_days: int, brand_rating: int) -> RatingCalculation:
    """Combine attendance and brand feedback into a rating out of five stars.

    Attendance is worth up to 2 stars (share of gig days attended) and the
    brand's 1-5 rating is worth up to 3 stars. Attendance above the number of
    gig days is capped rather than rejected.
    """
    if total_gig_days <= 0:
        raise ValidationFailedError("INVALID_TOTAL_GIG_DAYS", "Total gig days must be at least 1.")
    if attendance_days < 0:
        raise ValidationFailedError("INVALID_ATTENDANCE_DAYS", "Attendance days cannot be negative.")
    if brand_rating < 1 or brand_rating > 5:
        raise ValidationFailedError("INVALID_BRAND_RATING", "Brand rating must be between 1 and 5.")

    capped_days = min(int(attendance_days), int(total_gig_days))
    attendance_rating = round((capped_days / total_gig_days) * MAX_ATTENDANCE_STARS, 2)
    brand_rating_stars = round((brand_rating / 5.0) * MAX_BRAND_STARS, 2)
    final_rating = min(MAX_FINAL_RATING, max(0.0, round(attendance_rating + brand_rating_stars, 2)))
    return RatingCalculation(
        attendance_days=capped_days,
        total_gig_days=int(total_gig_days),
        brand_rating=int(brand_rating),
        attendance_rating=attendance_rating,
        brand_rating_stars=brand_rating_stars,
        final_rating=final_rating,
    )


def _resolve_gig_rating(db: Session, *, gig_id: int, usher_id: int) -> GigRating | None:
    return db.scalar(select(GigRating).where(GigRating.gig_id == gig_id, GigRating.usher_id == usher_id))


def _apply_calculation(
    rating: GigRating,
    calculation: RatingCalculation,
    *,
    notes: str | None,
    is_brand_rated: bool,
) -> None:
    rating.brand_rating = calculation.brand_rating
    rating.attendance_days = calculation.attendance_days
    rating.total_gig_days = calculation.total_gig_days
    rating.attendance_rating = calculation.attendance_rating
    rating.brand_rating_stars = calculation.brand_rating_stars
    rating.final_rating = calculation.final_rating
    rating.rating_notes = notes
    rating.is_brand_rated = is_brand_rated


def _upsert_gig_rating(
    db: Session,
    *,
    gig_id: int,
    usher_id: int,
    calculation: RatingCalculation,
    notes: str | None,
    is_brand_rated: bool,
) -> GigRating:
    rating = _resolve_gig_rating(db, gig_id=gig_id, usher_id=usher_id)
    if rating is not None:
        _apply_calculation(rating, calculation, notes=notes, is_brand_rated=is_brand_rated)
        db.commit()
        db.refresh(rating)
        return rating

    rating = GigRating(gig_id=gig_id, usher_id=usher_id)
    _apply_calculation(rating, calculation, notes=notes, is_brand_rated=is_brand_rated)
    db.add(rating)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent writer inserted the row first; overwrite it instead.
        db.rollback()
        rating = _resolve_gig_rating(db, gig_id=gig_id, usher_id=usher_id)
        if rating is None:
            raise
        _apply_calculation(rating, calculation, notes=notes, is_brand_rated=is_brand_rated)
        db.commit()
    db.refresh(rating)
    return rating


def recompute_aggregate(db: Session, *, usher_id: int) -> UsherAggregate:
    """Rebuild the usher's aggregate from every one of their gig ratings."""
    rows = db.execute(
        select(GigRating.final_rating, GigRating.attendance_rating, GigRating.brand_rating_stars).where(
            GigRating.usher_id == usher_id
        )
    ).all()
    gigs_completed = db.scalar(
        select(func.count(Shift.id)).where(Shift.usher_id == usher_id, Shift.check_out_verified.is_(True))
    )

    aggregate = db.get(UsherAggregate, usher_id)
    if aggregate is None:
        aggregate = UsherAggregate(usher_id=usher_id)
        db.add(aggregate)

    if rows:
        aggregate.overall_rating = round(mean(float(row[0]) for row in rows), 2)
        aggregate.attendance_rating_avg = round(mean(float(row[1]) for row in rows), 2)
        aggregate.brand_rating_avg = round(mean(float(row[2]) for row in rows), 2)
    else:
        aggregate.overall_rating = 0.0
        aggregate.attendance_rating_avg = 0.0
        aggregate.brand_rating_avg = 0.0
    aggregate.total_ratings_count = len(rows)
    aggregate.total_gigs_completed = int(gigs_completed or 0)
    aggregate.updated_at = normalize_ts(None)
    db.commit()

    logger.info(
        "usher_aggregate_recomputed",
        extra={
            "usher_id": usher_id,
            "overall_rating": aggregate.overall_rating,
            "total_ratings_count": aggregate.total_ratings_count,
        },
    )
    return aggregate


def submit_rating(
    db: Session,
    *,
    gig_id: int,
    usher_id: int,
    brand_rating: int,
    attendance_days: int,
    total_gig_days: int,
    notes: str | None = None,
    requester_id: int | None = None,
    now_utc: datetime | None = None,
) -> GigRating:
    schedule = require_gig_schedule(db, gig_id)
    if requester_id is not None:
        require_brand_owner(schedule, requester_id)
    if not is_approved_for_gig(db, gig_id, usher_id):
        raise ForbiddenError("NOT_APPROVED_FOR_GIG", "Usher was not approved for this gig.")

    calculation = calculate_rating(attendance_days, total_gig_days, brand_rating)
    normalized_notes = (notes or "").strip() or None
    rating = _upsert_gig_rating(
        db,
        gig_id=gig_id,
        usher_id=usher_id,
        calculation=calculation,
        notes=normalized_notes,
        is_brand_rated=True,
    )
    recompute_aggregate(db, usher_id=usher_id)

    emit_event(
        db,
        event_type=EVENT_RATING_SUBMITTED,
        payload={
            "gig_id": gig_id,
            "usher_id": usher_id,
            "gig_title": schedule.title,
            "final_rating": calculation.final_rating,
        },
        idempotency_key=f"{EVENT_RATING_SUBMITTED}:{rating.id}:{uuid4().hex}",
        now_utc=now_utc,
    )
    logger.info(
        "gig_rating_submitted",
        extra={"gig_id": gig_id, "usher_id": usher_id, "final_rating": calculation.final_rating},
    )
    return rating


def apply_attendance(
    db: Session,
    *,
    gig_id: int,
    usher_id: int,
    attendance_days: int,
    total_gig_days: int,
) -> GigRating:
    """Refresh the attendance part of a gig rating.

    A brand rating already on the row is kept. Without one the configured
    placeholder is used and the row stays marked as not brand rated until the
    brand submits a real rating.
    """
    existing = _resolve_gig_rating(db, gig_id=gig_id, usher_id=usher_id)
    if existing is not None:
        brand_rating = int(existing.brand_rating)
        is_brand_rated = bool(existing.is_brand_rated)
        notes = existing.rating_notes
    else:
        brand_rating = int(get_settings().placeholder_brand_rating)
        is_brand_rated = False
        notes = None

    calculation = calculate_rating(attendance_days, total_gig_days, brand_rating)
    return _upsert_gig_rating(
        db,
        gig_id=gig_id,
        usher_id=usher_id,
        calculation=calculation,
        notes=notes,
        is_brand_rated=is_brand_rated,
    )


def get_gig_rating(db: Session, *, gig_id: int, usher_id: int) -> GigRating:
    rating = _resolve_gig_rating(db, gig_id=gig_id, usher_id=usher_id)
    if rating is None:
        raise NotFoundError("RATING_NOT_FOUND", "No rating recorded for this usher on this gig.")
    return rating


def get_usher_aggregate(db: Session, *, usher_id: int) -> UsherAggregate:
    aggregate = db.get(UsherAggregate, usher_id)
    if aggregate is not None:
        return aggregate
    # Unrated ushers read as zeros; nothing is written.
    return UsherAggregate(
        usher_id=usher_id,
        overall_rating=0.0,
        attendance_rating_avg=0.0,
        brand_rating_avg=0.0,
        total_ratings_count=0,
        total_gigs_completed=0,
        updated_at=None,
    )


def _star_bucket(final_rating: float) -> str:
    if final_rating >= 4.5:
        return "five_stars"
    if final_rating >= 3.5:
        return "four_stars"
    if final_rating >= 2.5:
        return "three_stars"
    if final_rating >= 1.5:
        return "two_stars"
    return "one_star"


def get_usher_rating_stats(db: Session, *, usher_id: int) -> UsherRatingStats:
    aggregate = get_usher_aggregate(db, usher_id=usher_id)
    rows = db.execute(
        select(GigRating.final_rating, GigRating.attendance_days, GigRating.total_gig_days).where(
            GigRating.usher_id == usher_id
        )
    ).all()

    buckets = {"five_stars": 0, "four_stars": 0, "three_stars": 0, "two_stars": 0, "one_star": 0}
    percentages: list[float] = []
    for final_rating, attendance_days, total_gig_days in rows:
        buckets[_star_bucket(float(final_rating))] += 1
        if total_gig_days:
            percentages.append(min(1.0, attendance_days / total_gig_days) * 100)

    return UsherRatingStats(
        usher_id=usher_id,
        overall_rating=float(aggregate.overall_rating or 0.0),
        attendance_rating=float(aggregate.attendance_rating_avg or 0.0),
        brand_rating=float(aggregate.brand_rating_avg or 0.0),
        total_ratings=len(rows),
        completed_gigs=int(aggregate.total_gigs_completed or 0),
        attendance_percentage=round(mean(percentages), 2) if percentages else 0.0,
        rating_breakdown=RatingBreakdown(**buckets),
    )


def get_usher_rating_history(db: Session, *, usher_id: int, limit: int = 10) -> list[RatingHistoryEntry]:
    rows = db.execute(
        select(GigRating, Gig.title, Gig.start_datetime)
        .join(Gig, Gig.id == GigRating.gig_id)
        .where(GigRating.usher_id == usher_id)
        .order_by(GigRating.created_at.desc(), GigRating.id.desc())
        .limit(max(1, limit))
    ).all()
    return [
        RatingHistoryEntry(
            rating_id=rating.id,
            gig_id=rating.gig_id,
            gig_title=title or "",
            gig_start=normalize_ts(start_datetime),
            brand_rating=rating.brand_rating,
            is_brand_rated=bool(rating.is_brand_rated),
            attendance_days=rating.attendance_days,
            total_gig_days=rating.total_gig_days,
            attendance_rating=float(rating.attendance_rating),
            brand_rating_stars=float(rating.brand_rating_stars),
            final_rating=float(rating.final_rating),
            rating_notes=rating.rating_notes,
            created_at=normalize_ts(rating.created_at),
        )
        for rating, title, start_datetime in rows
    ]


def list_top_rated_ushers(db: Session, *, limit: int = 10) -> list[UsherAggregate]:
    return list(
        db.scalars(
            select(UsherAggregate)
            .where(UsherAggregate.total_ratings_count > 0)
            .order_by(
                UsherAggregate.overall_rating.desc(),
                UsherAggregate.total_gigs_completed.desc(),
                UsherAggregate.usher_id.asc(),
            )
            .limit(max(1, limit))
        ).all()
    )


def list_gig_roster(db: Session, *, gig_id: int, requester_id: int) -> list[RosterEntry]:
    """Approved ushers of a gig with their shift and any rating, for the owning brand.

    Ushers who never scanned are listed with status ``none``. ``brand_rating`` is
    only set once the brand has rated; the sweep's placeholder is not reported.
    """
    schedule = require_gig_schedule(db, gig_id)
    require_brand_owner(schedule, requester_id)

    rows = db.execute(
        select(GigApplication.usher_id, Shift, GigRating)
        .outerjoin(
            Shift,
            and_(Shift.gig_id == GigApplication.gig_id, Shift.usher_id == GigApplication.usher_id),
        )
        .outerjoin(
            GigRating,
            and_(GigRating.gig_id == GigApplication.gig_id, GigRating.usher_id == GigApplication.usher_id),
        )
        .where(
            GigApplication.gig_id == gig_id,
            GigApplication.status == ApplicationStatus.APPROVED.value,
        )
        .order_by(GigApplication.usher_id.asc())
    ).all()
    days_by_usher = attendance_days_by_usher(db, gig_id=gig_id)

    roster: list[RosterEntry] = []
    for usher_id, shift, rating in rows:
        brand_rated = rating is not None and bool(rating.is_brand_rated)
        roster.append(
            RosterEntry(
                usher_id=usher_id,
                attendance_status=AttendanceStatus(shift.attendance_status) if shift else AttendanceStatus.NONE,
                check_in_time=normalize_ts(shift.check_in_time) if shift and shift.check_in_time else None,
                check_out_time=normalize_ts(shift.check_out_time) if shift and shift.check_out_time else None,
                hours_worked=float(shift.hours_worked) if shift and shift.hours_worked is not None else None,
                payout_amount=float(shift.payout_amount) if shift and shift.payout_amount is not None else None,
                payout_status=PayoutStatus(shift.payout_status) if shift else None,
                attendance_days=days_by_usher.get(usher_id, 0),
                is_brand_rated=brand_rated,
                brand_rating=rating.brand_rating if brand_rated else None,
                final_rating=float(rating.final_rating) if rating is not None else None,
                rating_notes=rating.rating_notes if rating is not None else None,
            )
        )
    return roster
