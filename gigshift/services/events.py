from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigshift.db import SessionLocal
from gigshift.models import DomainEvent
from gigshift.services.gigs import normalize_ts
from gigshift.settings import get_settings

EVENT_ATTENDANCE_RECORDED = "AttendanceRecorded"
EVENT_RATING_SUBMITTED = "RatingSubmitted"

EVENT_STATUS_PENDING = "PENDING"
EVENT_STATUS_SENDING = "SENDING"
EVENT_STATUS_SENT = "SENT"
EVENT_STATUS_FAILED = "FAILED"

EventHandler = Callable[[DomainEvent], None]

logger = logging.getLogger("gigshift.events")
_handlers: dict[str, list[EventHandler]] = {}


def register_event_handler(event_type: str, handler: EventHandler) -> None:
    _handlers.setdefault(event_type, []).append(handler)


def clear_event_handlers() -> None:
    _handlers.clear()


def _has_event(session: Session, *, idempotency_key: str) -> bool:
    existing = session.scalar(select(DomainEvent.id).where(DomainEvent.idempotency_key == idempotency_key))
    return existing is not None


def emit_event(
    session: Session,
    *,
    event_type: str,
    payload: dict[str, Any],
    idempotency_key: str,
    now_utc: datetime | None = None,
) -> DomainEvent | None:
    """Write an event to the outbox in its own commit.

    Called after the producing mutation has been committed. A failure here is
    logged and swallowed so it can never undo that mutation.
    """
    try:
        if _has_event(session, idempotency_key=idempotency_key):
            return None
        event = DomainEvent(
            event_type=event_type,
            payload=payload,
            scheduled_at_utc=normalize_ts(now_utc),
            status=EVENT_STATUS_PENDING,
            attempts=0,
            last_error=None,
            idempotency_key=idempotency_key,
        )
        session.add(event)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception(
            "domain_event_write_failed",
            extra={"event_type": event_type, "idempotency_key": idempotency_key},
        )
        return None

    logger.info(
        "domain_event_emitted",
        extra={"event_type": event_type, "idempotency_key": idempotency_key},
    )
    return event


def _claim_due_pending_events(
    session: Session,
    *,
    now_utc: datetime,
    limit: int,
) -> list[DomainEvent]:
    stmt = (
        select(DomainEvent)
        .where(
            DomainEvent.status == EVENT_STATUS_PENDING,
            DomainEvent.scheduled_at_utc <= now_utc,
        )
        .order_by(DomainEvent.scheduled_at_utc.asc(), DomainEvent.id.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    events = list(session.scalars(stmt).all())
    for event in events:
        event.status = EVENT_STATUS_SENDING
    session.commit()
    return events


def _mark_event_sent(session: Session, *, event: DomainEvent) -> DomainEvent:
    event.status = EVENT_STATUS_SENT
    event.last_error = None
    session.commit()
    return event


def _mark_event_failure(
    session: Session,
    *,
    event: DomainEvent,
    error: Exception,
    now_utc: datetime,
) -> DomainEvent:
    max_attempts = max(1, int(get_settings().event_max_attempts))
    next_attempts = (event.attempts or 0) + 1
    event.attempts = next_attempts
    event.last_error = str(error)[:4000]
    if next_attempts < max_attempts:
        backoff_minutes = 2**next_attempts
        event.status = EVENT_STATUS_PENDING
        event.scheduled_at_utc = now_utc + timedelta(minutes=backoff_minutes)
    else:
        event.status = EVENT_STATUS_FAILED
    session.commit()
    return event


def dispatch_pending_events(
    limit: int = 100,
    *,
    now_utc: datetime | None = None,
    db: Session | None = None,
) -> list[DomainEvent]:
    if db is None:
        with SessionLocal() as managed_db:
            return dispatch_pending_events(limit=limit, now_utc=now_utc, db=managed_db)

    session = db
    reference_utc = normalize_ts(now_utc or datetime.now(timezone.utc))
    claimed = _claim_due_pending_events(session, now_utc=reference_utc, limit=max(1, limit))
    if not claimed:
        return []

    processed: list[DomainEvent] = []
    for event in claimed:
        handlers = list(_handlers.get(event.event_type, []))
        try:
            for handler in handlers:
                handler(event)
        except Exception as exc:
            failed = _mark_event_failure(session, event=event, error=exc, now_utc=reference_utc)
            logger.warning(
                "domain_event_delivery_failed",
                extra={
                    "event_id": failed.id,
                    "event_type": failed.event_type,
                    "attempts": failed.attempts,
                    "status": failed.status,
                    "error": failed.last_error,
                },
            )
            processed.append(failed)
            continue

        sent = _mark_event_sent(session, event=event)
        logger.info(
            "domain_event_delivered",
            extra={
                "event_id": sent.id,
                "event_type": sent.event_type,
                "handler_count": len(handlers),
            },
        )
        processed.append(sent)

    return processed
