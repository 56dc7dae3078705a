from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch

from fastapi.testclient import TestClient

from gigshift.db import get_db
from gigshift.errors import ConflictError, ExpiredError, NotFoundError, OutOfWindowError
from gigshift.main import app
from gigshift.models import AttendanceStatus, PayoutStatus
from gigshift.security import ROLE_BRAND, ROLE_USHER, Actor, require_actor
from gigshift.services.attendance import ShiftSnapshot
from gigshift.services.completion import GigCompletionSummary

GIG_START = datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc)


class _FakeDB:
    def commit(self) -> None:
        return

    def rollback(self) -> None:
        return


def _override_get_db(fake_db: _FakeDB):
    def _override() -> Generator[_FakeDB, None, None]:
        yield fake_db

    return _override


def _as(role: str, user_id: int):
    def _override() -> Actor:
        return Actor(user_id=user_id, role=role)

    return _override


def _snapshot(**overrides) -> ShiftSnapshot:  # type: ignore[no-untyped-def]
    values = {
        "shift_id": 3,
        "gig_id": 5,
        "usher_id": 20,
        "attendance_status": AttendanceStatus.CHECKED_OUT,
        "check_in_time": GIG_START,
        "check_out_time": datetime(2024, 1, 1, 22, 0, tzinfo=timezone.utc),
        "check_in_verified": True,
        "check_out_verified": True,
        "hours_worked": 3.9,
        "payout_amount": 195.0,
        "payout_status": PayoutStatus.PENDING,
    }
    values.update(overrides)
    return ShiftSnapshot(**values)


class AttendanceEndpointsTests(unittest.TestCase):
    def setUp(self) -> None:
        app.dependency_overrides[get_db] = _override_get_db(_FakeDB())

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    @patch("gigshift.routers.attendance.list_scanned_ushers", return_value=[])
    @patch("gigshift.routers.attendance.log_audit")
    @patch("gigshift.routers.attendance.generate_qr_session")
    def test_brand_generates_qr_session(self, mock_generate, mock_log_audit, _mock_scanned) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_BRAND, 10)
        mock_generate.return_value = SimpleNamespace(
            id=7,
            gig_id=5,
            token="tok_" + "a" * 40,
            created_at=GIG_START,
            expires_at=datetime(2024, 1, 1, 18, 10, tzinfo=timezone.utc),
            is_active=True,
        )

        response = TestClient(app).post("/api/gigs/5/qr-sessions")

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["id"], 7)
        self.assertTrue(body["is_active"])
        self.assertEqual(body["scanned_by"], [])
        self.assertEqual(mock_generate.call_args.kwargs["requester_id"], 10)
        self.assertEqual(mock_log_audit.call_args.kwargs["action"], "QR_SESSION_GENERATED")

    @patch("gigshift.routers.attendance.list_scanned_ushers")
    @patch("gigshift.routers.attendance.get_current_qr_session")
    def test_current_qr_session_lists_scanned_ushers(self, mock_current, mock_scanned) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_BRAND, 10)
        mock_current.return_value = SimpleNamespace(
            id=7,
            gig_id=5,
            token="tok_" + "a" * 40,
            created_at=GIG_START,
            expires_at=datetime(2024, 1, 1, 18, 10, tzinfo=timezone.utc),
            is_active=True,
        )
        mock_scanned.return_value = [20, 21]

        response = TestClient(app).get("/api/gigs/5/qr-sessions/current")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["scanned_by"], [20, 21])
        self.assertEqual(mock_scanned.call_args.kwargs["session_id"], 7)

    @patch("gigshift.routers.attendance.log_audit")
    @patch("gigshift.routers.attendance.generate_qr_session")
    def test_out_of_window_error_carries_window_details(self, mock_generate, _mock_log_audit) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_BRAND, 10)
        mock_generate.side_effect = OutOfWindowError(
            window_start=GIG_START,
            window_end=datetime(2024, 1, 1, 18, 10, tzinfo=timezone.utc),
            current_time=datetime(2024, 1, 1, 17, 0, tzinfo=timezone.utc),
        )

        response = TestClient(app).post("/api/gigs/5/qr-sessions", headers={"X-Request-Id": "req-1"})

        self.assertEqual(response.status_code, 422)
        error = response.json()["error"]
        self.assertEqual(error["code"], "OUTSIDE_TIME_WINDOW")
        self.assertEqual(error["request_id"], "req-1")
        self.assertEqual(error["details"]["window_start"], GIG_START.isoformat())

    def test_usher_cannot_generate_qr_session(self) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 20)

        response = TestClient(app).post("/api/gigs/5/qr-sessions")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "FORBIDDEN")

    def test_missing_bearer_token_is_rejected(self) -> None:
        response = TestClient(app).post("/api/attendance/scan", json={"token": "abc", "action": "check_in"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    @patch("gigshift.routers.attendance.log_audit")
    @patch("gigshift.routers.attendance.scan")
    def test_scan_returns_shift_snapshot(self, mock_scan, mock_log_audit) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 20)
        mock_scan.return_value = _snapshot()

        response = TestClient(app).post("/api/attendance/scan", json={"token": "abc", "action": "check_out"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["attendance_status"], "checked_out")
        self.assertEqual(body["hours_worked"], 3.9)
        self.assertEqual(body["payout_amount"], 195.0)
        self.assertEqual(mock_scan.call_args.kwargs["usher_id"], 20)
        self.assertEqual(mock_log_audit.call_args.kwargs["action"], "ATTENDANCE_SCAN_RECORDED")

    @patch("gigshift.routers.attendance.log_audit")
    @patch("gigshift.routers.attendance.scan")
    def test_expired_token_scan_is_gone_and_audited(self, mock_scan, mock_log_audit) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 20)
        mock_scan.side_effect = ExpiredError("QR_SESSION_EXPIRED", "QR session has expired.")

        response = TestClient(app).post("/api/attendance/scan", json={"token": "abc", "action": "check_in"})

        self.assertEqual(response.status_code, 410)
        self.assertEqual(response.json()["error"]["code"], "QR_SESSION_EXPIRED")
        audit_kwargs = mock_log_audit.call_args.kwargs
        self.assertEqual(audit_kwargs["action"], "ATTENDANCE_SCAN_DENIED")
        self.assertFalse(audit_kwargs["success"])
        self.assertEqual(audit_kwargs["details"]["reason"], "QR_SESSION_EXPIRED")

    @patch("gigshift.routers.attendance.log_audit")
    @patch("gigshift.routers.attendance.scan")
    def test_duplicate_check_in_is_conflict(self, mock_scan, _mock_log_audit) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 20)
        mock_scan.side_effect = ConflictError("ALREADY_CHECKED_IN", "Already checked in.")

        response = TestClient(app).post("/api/attendance/scan", json={"token": "abc", "action": "check_in"})

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"]["code"], "ALREADY_CHECKED_IN")

    def test_unknown_scan_action_is_validation_error(self) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 20)

        response = TestClient(app).post("/api/attendance/scan", json={"token": "abc", "action": "pause"})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "VALIDATION_ERROR")

    @patch("gigshift.routers.attendance.get_shift_snapshot")
    def test_usher_reads_own_shift(self, mock_snapshot) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 20)
        mock_snapshot.return_value = _snapshot(
            attendance_status=AttendanceStatus.CHECKED_IN,
            check_out_time=None,
            check_out_verified=False,
            hours_worked=None,
            payout_amount=None,
        )

        response = TestClient(app).get("/api/gigs/5/shifts/20")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["attendance_status"], "checked_in")
        self.assertIsNone(response.json()["hours_worked"])

    @patch("gigshift.routers.attendance.get_shift_snapshot")
    def test_usher_cannot_read_other_usher_shift(self, mock_snapshot) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_USHER, 21)

        response = TestClient(app).get("/api/gigs/5/shifts/20")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "NOT_SHIFT_OWNER")
        mock_snapshot.assert_not_called()

    @patch("gigshift.routers.attendance.get_shift_snapshot")
    @patch("gigshift.routers.attendance.require_brand_owner")
    @patch("gigshift.routers.attendance.require_gig_schedule")
    def test_brand_shift_read_checks_ownership(self, mock_schedule, mock_owner, mock_snapshot) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_BRAND, 10)
        mock_snapshot.side_effect = NotFoundError("SHIFT_NOT_FOUND", "Shift not found.")

        response = TestClient(app).get("/api/gigs/5/shifts/20")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "SHIFT_NOT_FOUND")
        mock_owner.assert_called_once_with(mock_schedule.return_value, 10)

    @patch("gigshift.routers.attendance.log_audit")
    @patch("gigshift.routers.attendance.complete_gig")
    def test_gig_completion_returns_summary(self, mock_complete, mock_log_audit) -> None:
        app.dependency_overrides[require_actor] = _as(ROLE_BRAND, 10)
        mock_complete.return_value = GigCompletionSummary(
            gig_id=5,
            completed_shifts=2,
            total_payout=390.0,
            attendance_records=3,
            rated_ushers=[20, 21],
        )

        response = TestClient(app).post("/api/gigs/5/complete")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["completed_shifts"], 2)
        self.assertEqual(body["rated_ushers"], [20, 21])
        self.assertEqual(mock_log_audit.call_args.kwargs["action"], "GIG_COMPLETION_SWEEP")


if __name__ == "__main__":
    unittest.main()
