"""Tests for admin credential checks and bearer tokens."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from voting_services.election_api.auth import (
    ConfiguredAdminAuthenticator,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from voting_services.election_api.config import settings


class TestPasswords:

    def test_hash_is_not_plaintext(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)


class TestConfiguredAdminAuthenticator:

    def test_accepts_configured_credentials(self):
        auth = ConfiguredAdminAuthenticator("admin", hash_password("admin123"))
        assert auth.verify("admin", "admin123") is True

    def test_rejects_wrong_password(self):
        auth = ConfiguredAdminAuthenticator("admin", hash_password("admin123"))
        assert auth.verify("admin", "admin1234") is False

    def test_rejects_wrong_username(self):
        auth = ConfiguredAdminAuthenticator("admin", hash_password("admin123"))
        assert auth.verify("root", "admin123") is False

    def test_rejects_empty_credentials(self):
        auth = ConfiguredAdminAuthenticator("admin", hash_password("admin123"))
        assert auth.verify("", "") is False
        assert auth.verify("admin", "") is False

    def test_from_settings_uses_configured_password(self):
        auth = ConfiguredAdminAuthenticator.from_settings()
        assert auth.username == settings.ADMIN_USERNAME
        assert auth.verify(settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD) is True


class TestAccessTokens:

    def test_round_trip(self):
        token = create_access_token("admin")
        assert decode_access_token(token) == "admin"

    def test_expired_token_is_rejected(self):
        token = create_access_token("admin", expires_minutes=-1)
        assert decode_access_token(token) is None

    def test_tampered_token_is_rejected(self):
        token = create_access_token("admin")
        assert decode_access_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB")) is None

    def test_token_signed_with_other_key_is_rejected(self):
        token = jwt.encode(
            {"sub": "admin", "role": "admin", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            "not-the-server-key",
            algorithm=settings.JWT_ALGORITHM
        )
        assert decode_access_token(token) is None

    def test_token_without_admin_role_is_rejected(self):
        token = jwt.encode(
            {"sub": "admin", "role": "voter", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
            settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM
        )
        assert decode_access_token(token) is None

    def test_garbage_is_rejected(self):
        assert decode_access_token("not-a-jwt") is None
