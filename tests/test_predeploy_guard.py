from __future__ import annotations

import io
import json
import unittest
from contextlib import redirect_stdout
from types import SimpleNamespace
from unittest.mock import patch

from scripts.predeploy_guard import check_runtime_settings, main


def _settings(**overrides) -> SimpleNamespace:  # type: ignore[no-untyped-def]
    values = {
        "jwt_secret": "rotated-secret",
        "qr_session_window_minutes": 10,
        "placeholder_brand_rating": 5,
        "attendance_timezone": "Africa/Cairo",
        "checkout_grace_hours": 6.0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class PredeployGuardTests(unittest.TestCase):
    @patch("scripts.predeploy_guard.get_settings")
    def test_unsafe_settings_fail(self, mock_settings) -> None:
        mock_settings.return_value = _settings(
            jwt_secret="change-this-secret",
            qr_session_window_minutes=0,
            placeholder_brand_rating=7,
        )

        result = check_runtime_settings()

        self.assertEqual(result["status"], "fail")
        self.assertEqual(
            result["problems"],
            ["JWT_SECRET_IS_DEFAULT", "QR_SESSION_WINDOW_TOO_SHORT", "PLACEHOLDER_BRAND_RATING_OUT_OF_RANGE"],
        )

    @patch.dict("os.environ", {"DATABASE_URL": ""})
    @patch("scripts.predeploy_guard.check_database")
    @patch("scripts.predeploy_guard.get_settings")
    def test_missing_database_url_only_warns(self, mock_settings, mock_check_database) -> None:
        mock_settings.return_value = _settings()
        output = io.StringIO()

        with redirect_stdout(output):
            exit_code = main()

        self.assertEqual(exit_code, 0)
        summary = json.loads(output.getvalue())
        self.assertTrue(summary["ok"])
        self.assertEqual(summary["checks"][1]["status"], "warn")
        mock_check_database.assert_not_called()


if __name__ == "__main__":
    unittest.main()
