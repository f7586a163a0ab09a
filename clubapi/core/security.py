"""Password hashing, reset-token hashing and the JWT token codec."""

import hashlib
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

import bcrypt
import jwt

from clubapi.core.config import get_settings
from clubapi.schemas.auth import Role

# Bcrypt cost factor (log2 rounds).
BCRYPT_ROUNDS = 12

# Claims every token must carry; anything else is ignored.
REQUIRED_CLAIMS = ["sub", "role", "iat", "exp"]


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache
def dummy_password_hash() -> str:
    """Hash checked against when the e-mail is unknown, so both login failures cost the same."""
    return hash_password(secrets.token_urlsafe(16))


def generate_reset_token() -> tuple[str, str]:
    """Return (raw token for the user, SHA-256 hex digest for storage)."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class TokenError(Exception):
    """Base class for token verification failures; `reason` is a stable code."""

    reason = "invalid_token"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TokenExpiredError(TokenError):
    reason = "expired"


class TokenSignatureError(TokenError):
    reason = "invalid_signature"


class MalformedTokenError(TokenError):
    reason = "malformed"


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of an access token."""

    subject_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenCodec:
    """
    Issues and verifies signed access tokens (HMAC JWT).

    expires-at is always issued-at + ttl. Timestamps are whole seconds, which is
    what the JWT numeric date claims can carry. The clock is injectable so
    expiry can be tested without sleeping.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not secret:
            raise ValueError("secret must be non-empty")
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self._clock = clock

    def issue(self, subject_id: str | int, role: Role | str) -> str:
        """Create a token for subject_id with the given role."""
        role = Role(role)
        subject = str(subject_id)
        if not subject.strip():
            raise ValueError("subject_id must be non-empty")
        now = self._clock().replace(microsecond=0)
        payload: dict[str, Any] = {
            "sub": subject,
            "role": role.value,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Check signature, shape and expiry; return the claims.

        Raises TokenSignatureError, TokenExpiredError or MalformedTokenError.
        The signature is checked before anything else, so a tampered expired
        token reports invalid_signature.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "require": REQUIRED_CLAIMS,
                    # Expiry is checked below against the injected clock.
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise TokenSignatureError("Token signature is invalid") from e
        except jwt.PyJWTError as e:
            raise MalformedTokenError("Token could not be decoded") from e

        subject = payload["sub"]
        if not isinstance(subject, str) or not subject.strip():
            raise MalformedTokenError("Token subject is missing")
        try:
            role = Role(payload["role"])
        except ValueError as e:
            raise MalformedTokenError("Token role is not recognised") from e
        issued_at = _numeric_date(payload["iat"])
        expires_at = _numeric_date(payload["exp"])
        if expires_at <= issued_at:
            raise MalformedTokenError("Token expiry precedes issue time")

        if self._clock() >= expires_at:
            raise TokenExpiredError("Token has expired")
        return TokenClaims(
            subject_id=subject,
            role=role,
            issued_at=issued_at,
            expires_at=expires_at,
        )


def _numeric_date(value: Any) -> datetime:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedTokenError("Token timestamps must be numeric")
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedTokenError("Token timestamp out of range") from e


@lru_cache
def get_token_codec() -> TokenCodec:
    """Process-wide codec built once from settings."""
    settings = get_settings()
    return TokenCodec(
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    )

