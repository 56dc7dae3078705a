from __future__ import annotations

import json
import logging
import unittest
from types import SimpleNamespace

from sqlalchemy import select

from gigshift.audit import client_ip, log_audit
from gigshift.logging_utils import JsonFormatter
from gigshift.models import AuditActorType, AuditLog
from sqlite_support import close_session, new_session


def _fake_request(*, headers: dict[str, str], host: str | None = "10.0.0.9", request_id: str | None = "req-7"):
    client = SimpleNamespace(host=host) if host else None
    return SimpleNamespace(headers=headers, client=client, state=SimpleNamespace(request_id=request_id))


class _FailingCommitSession:
    def __init__(self) -> None:
        self.rolled_back = False

    def add(self, _item):  # type: ignore[no-untyped-def]
        return None

    def commit(self):  # type: ignore[no-untyped-def]
        raise RuntimeError("database unavailable")

    def rollback(self):  # type: ignore[no-untyped-def]
        self.rolled_back = True


class AuditLogTests(unittest.TestCase):
    def test_client_ip_prefers_first_forwarded_address(self) -> None:
        request = _fake_request(headers={"x-forwarded-for": "203.0.113.4, 10.0.0.1"})

        self.assertEqual(client_ip(request), "203.0.113.4")  # type: ignore[arg-type]
        self.assertEqual(client_ip(_fake_request(headers={})), "10.0.0.9")  # type: ignore[arg-type]
        self.assertIsNone(client_ip(_fake_request(headers={}, host=None)))  # type: ignore[arg-type]

    def test_audit_row_is_persisted_with_request_fields(self) -> None:
        db = new_session()
        try:
            request = _fake_request(headers={"user-agent": "scanner/1.0"})
            log_audit(
                db,
                actor_type=AuditActorType.USHER,
                actor_id=20,
                action="ATTENDANCE_SCAN_RECORDED",
                success=True,
                entity_type="shift",
                entity_id=3,
                details={"gig_id": 5},
                request=request,  # type: ignore[arg-type]
            )

            row = db.scalar(select(AuditLog))
            self.assertEqual(row.actor_id, "20")
            self.assertEqual(row.entity_id, "3")
            self.assertEqual(row.ip, "10.0.0.9")
            self.assertEqual(row.user_agent, "scanner/1.0")
            self.assertEqual(row.details, {"gig_id": 5})
        finally:
            close_session(db)

    def test_failed_audit_write_is_swallowed(self) -> None:
        session = _FailingCommitSession()

        with self.assertLogs("gigshift.audit", level="ERROR") as captured:
            log_audit(
                session,  # type: ignore[arg-type]
                actor_type=AuditActorType.BRAND,
                actor_id=10,
                action="QR_SESSION_GENERATED",
                success=True,
            )

        self.assertTrue(session.rolled_back)
        self.assertEqual(captured.records[0].getMessage(), "audit_log_write_failed")
        self.assertIsNone(captured.records[0].request_id)


class JsonFormatterTests(unittest.TestCase):
    def test_extra_fields_are_included(self) -> None:
        record = logging.LogRecord(
            name="gigshift.attendance",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="shift_checked_in",
            args=(),
            exc_info=None,
        )
        record.gig_id = 5
        record.usher_id = 20

        payload = json.loads(JsonFormatter(service="GigShift").format(record))

        self.assertEqual(payload["message"], "shift_checked_in")
        self.assertEqual(payload["service"], "GigShift")
        self.assertEqual(payload["gig_id"], 5)
        self.assertEqual(payload["usher_id"], 20)
        self.assertNotIn("msg", payload)


if __name__ == "__main__":
    unittest.main()
