"""Admin authentication: credential verification and bearer tokens."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from jose import JWTError, jwt
from passlib.context import CryptContext

from voting_services.election_api.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADMIN_ROLE = "admin"


class Authenticator(Protocol):
    """Decides whether a username/password pair belongs to an admin."""

    def verify(self, username: str, password: str) -> bool:
        ...


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class ConfiguredAdminAuthenticator:
    """Single admin account taken from settings."""

    def __init__(self, username: str, password_hash: str):
        self.username = username
        self.password_hash = password_hash

    @classmethod
    def from_settings(cls) -> "ConfiguredAdminAuthenticator":
        password_hash = settings.ADMIN_PASSWORD_HASH or hash_password(settings.ADMIN_PASSWORD)
        return cls(settings.ADMIN_USERNAME, password_hash)

    def verify(self, username: str, password: str) -> bool:
        if not username or not password or username != self.username:
            return False
        return verify_password(password, self.password_hash)


def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """Issue a signed admin token for subject."""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode = {"sub": subject, "role": ADMIN_ROLE, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """
    Validate an admin token.

    Returns:
        The token subject, or None if the token is invalid, expired or not
        an admin token.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected admin token: {e}")
        return None

    if payload.get("role") != ADMIN_ROLE:
        return None
    return payload.get("sub")
