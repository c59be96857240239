"""
Admin authentication helpers.

The storefront has one privileged role, the admin who manages the catalog
and moves orders through their lifecycle.

Flow:
  1) POST /auth/admin/token with the configured ADMIN_API_KEY
  2) Backend returns a short-lived HS256 JWT (role=admin)
  3) Admin endpoints require  Authorization: Bearer <jwt>

Shoppers never authenticate; their checkout sessions are anonymous.
"""
import hmac
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import jwt
from fastapi import Header

from config import settings
from domain.errors import DomainError, PermissionDeniedError, UnauthorizedError

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_secret() -> str:
    if not settings.jwt_secret:
        raise DomainError("Server auth misconfigured (JWT secret missing).", status_code=500)
    return settings.jwt_secret


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def verify_admin_key(candidate: str) -> bool:
    """Constant-time comparison against ADMIN_API_KEY (never true when unset)."""
    if not settings.admin_api_key or not candidate:
        return False
    return hmac.compare_digest(candidate.encode(), settings.admin_api_key.encode())


def issue_access_token(*, subject: str, role: str = ADMIN_ROLE) -> str:
    secret = _require_secret()
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.jwt_access_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    secret = _require_secret()
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Access token expired.")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid access token.")


async def require_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    """
    FastAPI dependency for admin-only endpoints.

    Returns the token subject.
    """
    token = _parse_bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Authentication required. Provide Authorization: Bearer <token>.")

    payload = decode_access_token(token)
    if payload.get("role") != ADMIN_ROLE:
        logger.warning(f"Non-admin token used on admin endpoint (sub={payload.get('sub')})")
        raise PermissionDeniedError("Admin role required for this endpoint.")
    return payload["sub"]
