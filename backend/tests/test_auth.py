"""Test authentication utilities."""

from datetime import timedelta

import pytest
from app.auth import AuthContext, create_access_token, decode_token
from app.config import get_settings
from fastapi import HTTPException
from jose import jwt


class TestAuthUtilities:
    """Test token helpers."""

    def test_create_and_decode_token(self):
        """Test JWT token creation and decoding."""
        settings = get_settings()
        user_id = "usr_test123456"

        token = create_access_token(settings, user_id=user_id)
        assert isinstance(token, str)

        payload = decode_token(token, settings)
        assert payload["sub"] == user_id
        assert payload["type"] == "access"
        assert "exp" in payload
        assert "iat" in payload
        assert "is_admin" not in payload

    def test_admin_claim(self):
        settings = get_settings()
        token = create_access_token(settings, user_id="usr_admin", is_admin=True)
        assert decode_token(token, settings)["is_admin"] is True

    def test_expired_token_rejected(self):
        settings = get_settings()
        token = create_access_token(settings, user_id="usr_old", expires_delta=timedelta(seconds=-1))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token, settings)
        assert exc_info.value.status_code == 401

    def test_foreign_signature_rejected(self):
        settings = get_settings()
        token = jwt.encode({"sub": "usr_x"}, "some-other-secret", algorithm=settings.jwt_algorithm)

        with pytest.raises(HTTPException):
            decode_token(token, settings)

    def test_auth_context_defaults(self):
        ctx = AuthContext(user_id="usr_abc123")
        assert ctx.user_id == "usr_abc123"
        assert ctx.is_admin is False


class TestAuthOnRoutes:
    """Tokens as seen by the API."""

    def test_token_without_subject(self, client):
        settings = get_settings()
        token = jwt.encode({"type": "access"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

        response = client.get("/api/v1/offers", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token payload"

    def test_missing_header(self, client):
        response = client.get("/api/v1/offers")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"
