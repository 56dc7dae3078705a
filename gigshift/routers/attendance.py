from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from gigshift.audit import log_audit
from gigshift.db import get_db
from gigshift.errors import ApiError, ForbiddenError
from gigshift.models import AuditActorType, QRSession
from gigshift.schemas import (
    AttendanceScanRequest,
    GigCompletionResponse,
    QRSessionRead,
    QRSessionRevokeResponse,
    ShiftRead,
)
from gigshift.security import ROLE_BRAND, Actor, require_actor, require_brand, require_usher
from gigshift.services.attendance import get_shift_snapshot, scan
from gigshift.services.completion import complete_gig
from gigshift.services.gigs import require_brand_owner, require_gig_schedule
from gigshift.services.qr_sessions import (
    generate_qr_session,
    get_current_qr_session,
    list_scanned_ushers,
    revoke_qr_session,
)

router = APIRouter(tags=["attendance"])


def _qr_session_read(db: Session, qr_session: QRSession) -> QRSessionRead:
    read = QRSessionRead.model_validate(qr_session)
    read.scanned_by = list_scanned_ushers(db, session_id=qr_session.id)
    return read


@router.post(
    "/api/gigs/{gig_id}/qr-sessions",
    response_model=QRSessionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_qr_session(
    gig_id: int,
    request: Request,
    actor: Actor = Depends(require_brand),
    db: Session = Depends(get_db),
) -> QRSessionRead:
    qr_session = generate_qr_session(
        db,
        gig_id=gig_id,
        requester_id=actor.user_id,
        now_utc=datetime.now(timezone.utc),
    )
    log_audit(
        db,
        actor_type=AuditActorType.BRAND,
        actor_id=actor.user_id,
        action="QR_SESSION_GENERATED",
        success=True,
        entity_type="qr_session",
        entity_id=qr_session.id,
        details={"gig_id": gig_id, "expires_at": qr_session.expires_at.isoformat()},
        request=request,
    )
    return _qr_session_read(db, qr_session)


@router.get("/api/gigs/{gig_id}/qr-sessions/current", response_model=QRSessionRead)
def read_current_qr_session(
    gig_id: int,
    actor: Actor = Depends(require_brand),
    db: Session = Depends(get_db),
) -> QRSessionRead:
    qr_session = get_current_qr_session(
        db,
        gig_id=gig_id,
        requester_id=actor.user_id,
        now_utc=datetime.now(timezone.utc),
    )
    return _qr_session_read(db, qr_session)


@router.post("/api/qr-sessions/{session_id}/revoke", response_model=QRSessionRevokeResponse)
def revoke_session(
    session_id: int,
    request: Request,
    actor: Actor = Depends(require_brand),
    db: Session = Depends(get_db),
) -> QRSessionRevokeResponse:
    qr_session = revoke_qr_session(db, session_id=session_id, requester_id=actor.user_id)
    log_audit(
        db,
        actor_type=AuditActorType.BRAND,
        actor_id=actor.user_id,
        action="QR_SESSION_REVOKED",
        success=True,
        entity_type="qr_session",
        entity_id=qr_session.id,
        details={"gig_id": qr_session.gig_id},
        request=request,
    )
    return qr_session


@router.post("/api/attendance/scan", response_model=ShiftRead)
def attendance_scan(
    payload: AttendanceScanRequest,
    request: Request,
    actor: Actor = Depends(require_usher),
    db: Session = Depends(get_db),
) -> ShiftRead:
    try:
        snapshot = scan(
            db,
            token=payload.token,
            usher_id=actor.user_id,
            action=payload.action,
            now_utc=datetime.now(timezone.utc),
        )
    except ApiError as exc:
        request.state.flags = {"reason": exc.code}
        log_audit(
            db,
            actor_type=AuditActorType.USHER,
            actor_id=actor.user_id,
            action="ATTENDANCE_SCAN_DENIED",
            success=False,
            entity_type="shift",
            details={"reason": exc.code, "action": payload.action.value},
            request=request,
        )
        raise

    request.state.gig_id = snapshot.gig_id
    log_audit(
        db,
        actor_type=AuditActorType.USHER,
        actor_id=actor.user_id,
        action="ATTENDANCE_SCAN_RECORDED",
        success=True,
        entity_type="shift",
        entity_id=snapshot.shift_id,
        details={
            "gig_id": snapshot.gig_id,
            "action": payload.action.value,
            "hours_worked": snapshot.hours_worked,
            "payout_amount": snapshot.payout_amount,
        },
        request=request,
    )
    return snapshot


@router.get("/api/gigs/{gig_id}/shifts/{usher_id}", response_model=ShiftRead)
def read_shift(
    gig_id: int,
    usher_id: int,
    actor: Actor = Depends(require_actor),
    db: Session = Depends(get_db),
) -> ShiftRead:
    if actor.role == ROLE_BRAND:
        require_brand_owner(require_gig_schedule(db, gig_id), actor.user_id)
    elif actor.user_id != usher_id:
        raise ForbiddenError("NOT_SHIFT_OWNER", "Ushers can only read their own shifts.")
    return get_shift_snapshot(db, gig_id=gig_id, usher_id=usher_id)


@router.post("/api/gigs/{gig_id}/complete", response_model=GigCompletionResponse)
def complete_gig_endpoint(
    gig_id: int,
    request: Request,
    actor: Actor = Depends(require_brand),
    db: Session = Depends(get_db),
) -> GigCompletionResponse:
    summary = complete_gig(
        db,
        gig_id=gig_id,
        requester_id=actor.user_id,
        now_utc=datetime.now(timezone.utc),
    )
    log_audit(
        db,
        actor_type=AuditActorType.BRAND,
        actor_id=actor.user_id,
        action="GIG_COMPLETION_SWEEP",
        success=True,
        entity_type="gig",
        entity_id=gig_id,
        details={
            "completed_shifts": summary.completed_shifts,
            "total_payout": summary.total_payout,
            "attendance_records": summary.attendance_records,
        },
        request=request,
    )
    return summary
