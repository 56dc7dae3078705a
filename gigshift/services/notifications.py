"""Default consumers of attendance and rating events.

Delivery channels (push, SMS, WhatsApp) live in the notification service; the
handlers here turn events into structured notification records in the log,
which that service tails.
"""

from __future__ import annotations

import logging

from gigshift.models import DomainEvent
from gigshift.services.events import (
    EVENT_ATTENDANCE_RECORDED,
    EVENT_RATING_SUBMITTED,
    register_event_handler,
)

logger = logging.getLogger("gigshift.notifications")


def notify_attendance_recorded(event: DomainEvent) -> None:
    payload = event.payload or {}
    action = payload.get("action")
    if action == "check_out":
        title = "Checked out"
        body = f"Shift closed with {payload.get('hours_worked')} hours worked."
    else:
        title = "Checked in"
        body = "Your check-in was recorded."
    logger.info(
        "usher_notification",
        extra={
            "event_id": event.id,
            "usher_id": payload.get("usher_id"),
            "gig_id": payload.get("gig_id"),
            "title": title,
            "body": body,
        },
    )


def notify_rating_submitted(event: DomainEvent) -> None:
    payload = event.payload or {}
    gig_title = payload.get("gig_title") or "your gig"
    logger.info(
        "usher_notification",
        extra={
            "event_id": event.id,
            "usher_id": payload.get("usher_id"),
            "gig_id": payload.get("gig_id"),
            "title": "New rating",
            "body": f"You received {payload.get('final_rating')} stars for {gig_title}.",
        },
    )


def register_notification_handlers() -> None:
    register_event_handler(EVENT_ATTENDANCE_RECORDED, notify_attendance_recorded)
    register_event_handler(EVENT_RATING_SUBMITTED, notify_rating_submitted)
