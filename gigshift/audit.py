from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session

from gigshift.models import AuditActorType, AuditLog

logger = logging.getLogger("gigshift.audit")


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def _request_fields(request: Request | None) -> dict[str, str | None]:
    if request is None:
        return {"ip": None, "user_agent": None, "request_id": None}
    return {
        "ip": client_ip(request),
        "user_agent": request.headers.get("user-agent"),
        "request_id": getattr(request.state, "request_id", None),
    }


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: int | str,
    action: str,
    success: bool,
    entity_type: str | None = None,
    entity_id: int | str | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> None:
    """Persist one audit row in its own commit.

    A failed write is logged and rolled back; it never fails the request that
    triggered it.
    """
    request_fields = _request_fields(request)
    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=str(actor_id),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=request_fields["ip"],
        user_agent=request_fields["user_agent"],
        success=success,
        details=details or {},
    )
    log_extra = {
        "request_id": request_fields["request_id"],
        "action": action,
        "actor_type": actor_type.value,
        "actor_id": str(actor_id),
        "success": success,
    }

    db.add(audit)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("audit_log_write_failed", extra=log_extra)
        return

    logger.info(
        "audit_event",
        extra={
            **log_extra,
            "entity_type": entity_type,
            "entity_id": audit.entity_id,
            "ip": request_fields["ip"],
            "details": details or {},
        },
    )
