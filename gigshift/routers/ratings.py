from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from gigshift.audit import log_audit
from gigshift.db import get_db
from gigshift.models import AuditActorType
from gigshift.schemas import (
    GigRatingRead,
    RatingHistoryEntryRead,
    RatingSubmitRequest,
    RosterEntryRead,
    UsherAggregateRead,
    UsherRatingStatsRead,
)
from gigshift.security import Actor, require_actor, require_brand
from gigshift.services.ratings import (
    get_gig_rating,
    get_usher_aggregate,
    get_usher_rating_history,
    get_usher_rating_stats,
    list_gig_roster,
    list_top_rated_ushers,
    submit_rating,
)

router = APIRouter(tags=["ratings"])


@router.post("/api/ratings", response_model=GigRatingRead, status_code=status.HTTP_201_CREATED)
def create_rating(
    payload: RatingSubmitRequest,
    request: Request,
    actor: Actor = Depends(require_brand),
    db: Session = Depends(get_db),
) -> GigRatingRead:
    rating = submit_rating(
        db,
        gig_id=payload.gig_id,
        usher_id=payload.usher_id,
        brand_rating=payload.brand_rating,
        attendance_days=payload.attendance_days,
        total_gig_days=payload.total_gig_days,
        notes=payload.notes,
        requester_id=actor.user_id,
        now_utc=datetime.now(timezone.utc),
    )
    log_audit(
        db,
        actor_type=AuditActorType.BRAND,
        actor_id=actor.user_id,
        action="GIG_RATING_SUBMITTED",
        success=True,
        entity_type="gig_rating",
        entity_id=rating.id,
        details={
            "gig_id": payload.gig_id,
            "usher_id": payload.usher_id,
            "final_rating": rating.final_rating,
        },
        request=request,
    )
    return rating


@router.get("/api/ratings/{gig_id}/{usher_id}", response_model=GigRatingRead)
def read_gig_rating(
    gig_id: int,
    usher_id: int,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> GigRatingRead:
    return get_gig_rating(db, gig_id=gig_id, usher_id=usher_id)


@router.get("/api/gigs/{gig_id}/roster", response_model=list[RosterEntryRead])
def read_gig_roster(
    gig_id: int,
    actor: Actor = Depends(require_brand),
    db: Session = Depends(get_db),
) -> list[RosterEntryRead]:
    return list_gig_roster(db, gig_id=gig_id, requester_id=actor.user_id)


@router.get("/api/ushers/top-rated", response_model=list[UsherAggregateRead])
def read_top_rated_ushers(
    limit: int = Query(default=10, ge=1, le=100),
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> list[UsherAggregateRead]:
    return list_top_rated_ushers(db, limit=limit)


@router.get("/api/ushers/{usher_id}/aggregate", response_model=UsherAggregateRead)
def read_usher_aggregate(
    usher_id: int,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> UsherAggregateRead:
    return get_usher_aggregate(db, usher_id=usher_id)


@router.get("/api/ushers/{usher_id}/rating-stats", response_model=UsherRatingStatsRead)
def read_usher_rating_stats(
    usher_id: int,
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> UsherRatingStatsRead:
    return get_usher_rating_stats(db, usher_id=usher_id)


@router.get("/api/ushers/{usher_id}/rating-history", response_model=list[RatingHistoryEntryRead])
def read_usher_rating_history(
    usher_id: int,
    limit: int = Query(default=10, ge=1, le=100),
    _actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> list[RatingHistoryEntryRead]:
    return get_usher_rating_history(db, usher_id=usher_id, limit=limit)
