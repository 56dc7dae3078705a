"""Bearer token checks for brand and usher callers.

Tokens are issued by the account service; this module only verifies them and
exposes the caller's role and user id to the routers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from gigshift.errors import ApiError
from gigshift.settings import get_settings

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_BRAND = "brand"
ROLE_USHER = "usher"


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError as exc:
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token is invalid.") from exc

    if payload.get("role") not in {ROLE_BRAND, ROLE_USHER}:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Insufficient permissions.")
    return payload


def _actor_from_payload(payload: dict[str, Any]) -> Actor:
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Token subject is invalid.") from None
    return Actor(user_id=user_id, role=str(payload["role"]))


def require_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(status_code=401, code="INVALID_TOKEN", message="Missing bearer token.")

    actor = _actor_from_payload(decode_token(credentials.credentials))
    request.state.actor = actor.role
    request.state.actor_id = str(actor.user_id)
    return actor


def require_brand(actor: Actor = Depends(require_actor)) -> Actor:
    if actor.role != ROLE_BRAND:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Only brands can do this.")
    return actor


def require_usher(actor: Actor = Depends(require_actor)) -> Actor:
    if actor.role != ROLE_USHER:
        raise ApiError(status_code=403, code="FORBIDDEN", message="Only ushers can do this.")
    return actor
