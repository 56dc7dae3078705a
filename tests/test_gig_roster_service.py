from __future__ import annotations

import unittest

from gigshift.errors import AccessDeniedError, NotFoundError
from gigshift.models import ApplicationStatus, AttendanceStatus, PayoutStatus
from gigshift.services.attendance import build_daily_attendance, check_in, check_out
from gigshift.services.qr_sessions import generate_qr_session
from gigshift.services.ratings import apply_attendance, list_gig_roster, submit_rating
from sqlite_support import (
    BRAND_ID,
    OTHER_BRAND_ID,
    OTHER_USHER_ID,
    USHER_ID,
    add_application,
    add_gig,
    at,
    close_session,
    new_session,
)

PENDING_USHER_ID = 22


class GigRosterServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = new_session()
        self.gig = add_gig(self.db, duration_hours=4.0, pay_rate=50.0)
        add_application(self.db, gig_id=self.gig.id, usher_id=USHER_ID)
        add_application(self.db, gig_id=self.gig.id, usher_id=OTHER_USHER_ID)
        add_application(
            self.db,
            gig_id=self.gig.id,
            usher_id=PENDING_USHER_ID,
            status=ApplicationStatus.PENDING.value,
        )

    def tearDown(self) -> None:
        close_session(self.db)

    def _work_and_rate_first_usher(self) -> None:
        token = generate_qr_session(self.db, gig_id=self.gig.id, requester_id=BRAND_ID, now_utc=at(5)).token
        check_in(self.db, token=token, usher_id=USHER_ID, now_utc=at(6))
        check_out(self.db, token=token, usher_id=USHER_ID, now_utc=at(240))
        build_daily_attendance(self.db, gig_id=self.gig.id)
        submit_rating(
            self.db,
            gig_id=self.gig.id,
            usher_id=USHER_ID,
            brand_rating=4,
            attendance_days=1,
            total_gig_days=1,
            notes="on time",
        )

    def test_roster_lists_approved_ushers_with_shift_and_rating(self) -> None:
        self._work_and_rate_first_usher()

        roster = list_gig_roster(self.db, gig_id=self.gig.id, requester_id=BRAND_ID)

        self.assertEqual([entry.usher_id for entry in roster], [USHER_ID, OTHER_USHER_ID])
        worked = roster[0]
        self.assertEqual(worked.attendance_status, AttendanceStatus.CHECKED_OUT)
        self.assertEqual(worked.check_in_time, at(6))
        self.assertEqual(worked.check_out_time, at(240))
        self.assertAlmostEqual(worked.hours_worked, 3.9)
        self.assertAlmostEqual(worked.payout_amount, 195.0)
        self.assertEqual(worked.payout_status, PayoutStatus.PENDING)
        self.assertEqual(worked.attendance_days, 1)
        self.assertTrue(worked.is_brand_rated)
        self.assertEqual(worked.brand_rating, 4)
        self.assertEqual(worked.final_rating, 4.4)
        self.assertEqual(worked.rating_notes, "on time")

    def test_usher_without_shift_is_listed_as_none(self) -> None:
        roster = list_gig_roster(self.db, gig_id=self.gig.id, requester_id=BRAND_ID)

        no_show = roster[1]
        self.assertEqual(no_show.usher_id, OTHER_USHER_ID)
        self.assertEqual(no_show.attendance_status, AttendanceStatus.NONE)
        self.assertIsNone(no_show.check_in_time)
        self.assertIsNone(no_show.hours_worked)
        self.assertIsNone(no_show.payout_status)
        self.assertEqual(no_show.attendance_days, 0)
        self.assertFalse(no_show.is_brand_rated)
        self.assertIsNone(no_show.final_rating)

    def test_placeholder_brand_rating_is_not_reported(self) -> None:
        apply_attendance(self.db, gig_id=self.gig.id, usher_id=OTHER_USHER_ID, attendance_days=0, total_gig_days=1)

        roster = list_gig_roster(self.db, gig_id=self.gig.id, requester_id=BRAND_ID)

        unrated = roster[1]
        self.assertFalse(unrated.is_brand_rated)
        self.assertIsNone(unrated.brand_rating)
        self.assertEqual(unrated.final_rating, 3.0)

    def test_other_brand_is_denied(self) -> None:
        with self.assertRaises(AccessDeniedError):
            list_gig_roster(self.db, gig_id=self.gig.id, requester_id=OTHER_BRAND_ID)

    def test_unknown_gig_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            list_gig_roster(self.db, gig_id=999, requester_id=BRAND_ID)


if __name__ == "__main__":
    unittest.main()
