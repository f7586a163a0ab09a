"""Read-only credential lookups over the users table."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from clubapi.models import User
from clubapi.schemas.auth import AccountStatus, Role

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Failures that mean the users table cannot be reached right now.
STORE_UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)


class StoreUnavailableError(Exception):
    """Raised when the credential store cannot be reached."""

    def __init__(self, message: str = "Credential store is unavailable") -> None:
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class Credential:
    """One user's authentication identity as seen by the auth core."""

    subject_id: str
    email: str
    role: Role
    status: AccountStatus
    password_hash: str = field(repr=False)
    password_changed_at: datetime | None = None
    locked_until: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is AccountStatus.ACTIVE


class CredentialStore(Protocol):
    """Lookups the auth core needs; implementations must not be mutated through it."""

    def find_by_email(self, email: str) -> Credential | None: ...

    def find_by_id(self, subject_id: str) -> Credential | None: ...


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps from the database as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def credential_from_user(user: User) -> Credential:
    """Map an ORM row to a Credential; unknown role/status values raise ValueError."""
    return Credential(
        subject_id=str(user.id),
        email=user.email,
        role=Role(user.role),
        status=AccountStatus(user.status),
        password_hash=user.password_hash,
        password_changed_at=ensure_utc(user.password_changed_at),
        locked_until=ensure_utc(user.locked_until),
    )


class SqlCredentialStore:
    """CredentialStore backed by the SQLAlchemy session of the current request."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def find_by_email(self, email: str) -> Credential | None:
        normalized = normalize_email(email)
        if not normalized:
            return None
        user = self._first(User.email == normalized)
        return credential_from_user(user) if user is not None else None

    def find_by_id(self, subject_id: str) -> Credential | None:
        try:
            user_id = int(subject_id)
        except (TypeError, ValueError):
            return None
        user = self._first(User.id == user_id)
        return credential_from_user(user) if user is not None else None

    def _first(self, criterion) -> User | None:
        try:
            return self._db.query(User).filter(criterion).first()
        except STORE_UNAVAILABLE_ERRORS as e:
            logger.error("Credential store lookup failed: %s", type(e).__name__)
            raise StoreUnavailableError() from e
