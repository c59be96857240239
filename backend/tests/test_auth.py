"""
Tests for admin authentication middleware.

Tests: verify_admin_key, token issue/decode, require_admin header handling.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException

from config import settings
from middleware.auth import (
    decode_access_token,
    issue_access_token,
    require_admin,
    verify_admin_key,
)


class TestAdminKey:

    @pytest.mark.unit
    def test_correct_key(self):
        assert verify_admin_key(settings.admin_api_key) is True

    @pytest.mark.unit
    def test_wrong_key(self):
        assert verify_admin_key("not-the-key") is False

    @pytest.mark.unit
    def test_empty_key(self):
        assert verify_admin_key("") is False

    @pytest.mark.unit
    def test_unset_key_never_matches(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", "")
        assert verify_admin_key("") is False
        assert verify_admin_key("anything") is False


class TestTokens:

    @pytest.mark.unit
    def test_round_trip(self):
        payload = decode_access_token(issue_access_token(subject="admin"))
        assert payload["sub"] == "admin"
        assert payload["role"] == "admin"
        assert payload["iss"] == settings.jwt_issuer

    @pytest.mark.unit
    def test_expired_token(self):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {
                "iss": settings.jwt_issuer,
                "sub": "admin",
                "role": "admin",
                "iat": int(past.timestamp()),
                "exp": int((past + timedelta(minutes=5)).timestamp()),
            },
            settings.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401
        assert "expired" in exc_info.value.detail

    @pytest.mark.unit
    def test_wrong_signature(self):
        token = jwt.encode(
            {"iss": settings.jwt_issuer, "sub": "admin", "role": "admin", "iat": 0, "exp": 4102444800},
            "some-other-secret",
            algorithm="HS256",
        )
        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    def test_missing_secret_is_server_error(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_secret", "")
        with pytest.raises(HTTPException) as exc_info:
            issue_access_token(subject="admin")
        assert exc_info.value.status_code == 500


class TestRequireAdmin:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_valid_bearer(self):
        token = issue_access_token(subject="admin")
        assert await require_admin(authorization=f"Bearer {token}") == "admin"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_header_raises_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(authorization=None)
        assert exc_info.value.status_code == 401
        assert "Authentication required" in exc_info.value.detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_bearer_scheme_raises_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(authorization=f"Basic {settings.admin_api_key}")
        assert exc_info.value.status_code == 401

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_role_raises_403(self):
        token = issue_access_token(subject="shopper", role="customer")
        with pytest.raises(HTTPException) as exc_info:
            await require_admin(authorization=f"Bearer {token}")
        assert exc_info.value.status_code == 403
