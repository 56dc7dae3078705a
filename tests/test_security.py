from __future__ import annotations

import unittest
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

from fastapi.testclient import TestClient
from jose import jwt

from gigshift.db import get_db
from gigshift.errors import ApiError
from gigshift.main import app
from gigshift.security import ROLE_BRAND, ROLE_USHER, _actor_from_payload, decode_token
from gigshift.settings import get_settings


def _token(*, sub: str = "20", role: str = ROLE_USHER, secret: str | None = None, expires_in: int = 3600) -> str:
    settings = get_settings()
    claims = {
        "sub": sub,
        "role": role,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm="HS256")


class DecodeTokenTests(unittest.TestCase):
    def test_valid_token_decodes(self) -> None:
        payload = decode_token(_token(role=ROLE_BRAND, sub="10"))

        self.assertEqual(payload["role"], ROLE_BRAND)
        self.assertEqual(_actor_from_payload(payload).user_id, 10)

    def test_token_signed_with_other_secret_is_invalid(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            decode_token(_token(secret="not-the-secret"))

        self.assertEqual(ctx.exception.status_code, 401)
        self.assertEqual(ctx.exception.code, "INVALID_TOKEN")

    def test_expired_token_is_invalid(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            decode_token(_token(expires_in=-60))

        self.assertEqual(ctx.exception.status_code, 401)

    def test_unknown_role_is_forbidden(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            decode_token(_token(role="admin"))

        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.code, "FORBIDDEN")

    def test_non_numeric_subject_is_invalid(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            _actor_from_payload({"sub": "usher-abc", "role": ROLE_USHER})

        self.assertEqual(ctx.exception.status_code, 401)


class BearerAuthEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        def _override_get_db() -> Generator[SimpleNamespace, None, None]:
            yield SimpleNamespace()

        app.dependency_overrides[get_db] = _override_get_db

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    @patch("gigshift.routers.ratings.get_usher_aggregate")
    def test_bearer_token_reaches_endpoint(self, mock_aggregate) -> None:
        mock_aggregate.return_value = SimpleNamespace(
            usher_id=20,
            overall_rating=0.0,
            attendance_rating_avg=0.0,
            brand_rating_avg=0.0,
            total_ratings_count=0,
            total_gigs_completed=0,
            updated_at=None,
        )

        response = TestClient(app).get(
            "/api/ushers/20/aggregate",
            headers={"Authorization": f"Bearer {_token()}"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["usher_id"], 20)

    def test_garbage_bearer_token_is_rejected(self) -> None:
        response = TestClient(app).get(
            "/api/ushers/20/aggregate",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")


if __name__ == "__main__":
    unittest.main()
