"""Account operations: registration, login bookkeeping, password changes and admin updates."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clubapi.core.security import (
    dummy_password_hash,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from clubapi.models import User
from clubapi.schemas.auth import AccountStatus, Role
from clubapi.services.credential_store import (
    Credential,
    STORE_UNAVAILABLE_ERRORS,
    CredentialStore,
    StoreUnavailableError,
    ensure_utc,
    normalize_email,
)

if TYPE_CHECKING:
    from clubapi.core.config import Settings

logger = logging.getLogger(__name__)


class AccountError(Exception):
    """Base class for account operation failures mapped to an HTTP status by the API."""

    code = "malformed"
    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DuplicateAccountError(AccountError):
    code = "conflict"
    status_code = 409


class InvalidCredentialsError(AccountError):
    """Unknown e-mail or wrong password; the two are deliberately indistinguishable."""

    code = "unauthorized"
    status_code = 401

    def __init__(self, message: str = "Invalid email or password.") -> None:
        super().__init__(message)


class AccountInactiveError(AccountError):
    code = "forbidden"
    status_code = 403

    def __init__(self, status: AccountStatus) -> None:
        self.status = status
        super().__init__(
            f"Your account is {status.value.lower()}. Please contact an administrator."
        )


class AccountLockedError(AccountError):
    code = "locked"
    status_code = 423

    def __init__(self, locked_until: datetime) -> None:
        self.locked_until = locked_until
        super().__init__(
            "Account is locked due to too many failed login attempts. Please try again later."
        )


class AccountNotFoundError(AccountError):
    code = "not_found"
    status_code = 404

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class InvalidResetTokenError(AccountError):
    def __init__(self) -> None:
        super().__init__("Invalid or expired reset token")


@contextmanager
def _store_errors(db: Session) -> Iterator[None]:
    """Translate connection failures into StoreUnavailableError, rolling back first."""
    try:
        yield
    except STORE_UNAVAILABLE_ERRORS as e:
        db.rollback()
        logger.error("Account store write failed: %s", type(e).__name__)
        raise StoreUnavailableError() from e


def _utcnow() -> datetime:
    return datetime.now(UTC)


def get_user(db: Session, user_id: int | str) -> User:
    try:
        key = int(user_id)
    except (TypeError, ValueError):
        raise AccountNotFoundError() from None
    with _store_errors(db):
        user = db.get(User, key)
    if user is None:
        raise AccountNotFoundError()
    return user


def list_users(db: Session) -> list[User]:
    with _store_errors(db):
        return db.query(User).order_by(User.id).all()


def list_active_users(db: Session) -> list[User]:
    with _store_errors(db):
        return (
            db.query(User)
            .filter(User.status == AccountStatus.ACTIVE.value)
            .order_by(User.name)
            .all()
        )


def register_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    role: Role = Role.MEMBER,
) -> User:
    """Create an Active account. Raises DuplicateAccountError if the e-mail is taken."""
    normalized = normalize_email(email)
    with _store_errors(db):
        existing = db.query(User.id).filter(User.email == normalized).first()
        if existing is not None:
            raise DuplicateAccountError("Email already registered")
        user = User(
            name=name.strip(),
            email=normalized,
            password_hash=hash_password(password),
            role=Role(role).value,
            status=AccountStatus.ACTIVE.value,
            failed_login_attempts=0,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same e-mail.
            db.rollback()
            raise DuplicateAccountError("Email already registered") from e
        db.refresh(user)
    logger.info("Account registered", extra={"subject_id": str(user.id), "role": user.role})
    return user


def authenticate(
    store: CredentialStore,
    db: Session,
    email: str,
    password: str,
    settings: "Settings",
    now: datetime | None = None,
) -> Credential:
    """
    Check e-mail and password and update login bookkeeping.

    Order: lockout, password, account status. Status is only revealed to a
    caller who knows the password. Raises InvalidCredentialsError,
    AccountLockedError or AccountInactiveError.
    """
    now = now or _utcnow()
    credential = store.find_by_email(email)
    if credential is None:
        verify_password(password, dummy_password_hash())
        logger.info("Login failed", extra={"reason": "unknown_email"})
        raise InvalidCredentialsError()

    if credential.locked_until is not None and credential.locked_until > now:
        logger.info("Login refused while locked", extra={"subject_id": credential.subject_id})
        raise AccountLockedError(credential.locked_until)

    if not verify_password(password, credential.password_hash):
        _record_failed_login(db, credential, settings, now)
        raise InvalidCredentialsError()

    if not credential.is_active:
        logger.info(
            "Login refused for inactive account",
            extra={"subject_id": credential.subject_id, "status": credential.status.value},
        )
        raise AccountInactiveError(credential.status)

    with _store_errors(db):
        db.query(User).filter(User.id == int(credential.subject_id)).update(
            {
                User.failed_login_attempts: 0,
                User.locked_until: None,
                User.last_login_at: now,
            },
            synchronize_session=False,
        )
        db.commit()
    logger.info("Login succeeded", extra={"subject_id": credential.subject_id})
    return credential


def _record_failed_login(
    db: Session,
    credential: Credential,
    settings: "Settings",
    now: datetime,
) -> None:
    """Increment the failure counter in place and lock the account at the threshold."""
    user_id = int(credential.subject_id)
    with _store_errors(db):
        db.query(User).filter(User.id == user_id).update(
            {User.failed_login_attempts: User.failed_login_attempts + 1},
            synchronize_session=False,
        )
        attempts = db.query(User.failed_login_attempts).filter(User.id == user_id).scalar() or 0
        locked = attempts >= settings.ACCOUNT_LOCKOUT_THRESHOLD
        if locked:
            db.query(User).filter(User.id == user_id).update(
                {
                    User.failed_login_attempts: 0,
                    User.locked_until: now + timedelta(minutes=settings.ACCOUNT_LOCKOUT_MINUTES),
                },
                synchronize_session=False,
            )
        db.commit()
    logger.info(
        "Login failed",
        extra={"reason": "bad_password", "subject_id": credential.subject_id, "locked": locked},
    )


def update_password(
    db: Session,
    user_id: int | str,
    current_password: str,
    new_password: str,
    now: datetime | None = None,
) -> User:
    """Change a user's own password; tokens issued before now stop working."""
    if current_password == new_password:
        raise AccountError("New password must be different from current password")
    user = get_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        logger.info("Password change refused", extra={"subject_id": str(user.id)})
        raise InvalidCredentialsError("Current password is incorrect")
    with _store_errors(db):
        user.password_hash = hash_password(new_password)
        user.password_changed_at = now or _utcnow()
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        db.commit()
        db.refresh(user)
    logger.info("Password changed", extra={"subject_id": str(user.id)})
    return user


def request_password_reset(
    db: Session,
    email: str,
    settings: "Settings",
    now: datetime | None = None,
) -> str | None:
    """Store a hashed reset token for the account; return the raw token, or None if unknown."""
    normalized = normalize_email(email)
    with _store_errors(db):
        user = db.query(User).filter(User.email == normalized).first()
        if user is None:
            return None
        raw, digest = generate_reset_token()
        user.password_reset_token_hash = digest
        user.password_reset_expires_at = (now or _utcnow()) + timedelta(
            minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        db.commit()
    logger.info("Password reset requested", extra={"subject_id": str(user.id)})
    return raw


def reset_password(
    db: Session,
    raw_token: str,
    new_password: str,
    now: datetime | None = None,
) -> User:
    """Consume a reset token and set a new password. Raises InvalidResetTokenError."""
    now = now or _utcnow()
    with _store_errors(db):
        user = (
            db.query(User)
            .filter(User.password_reset_token_hash == hash_reset_token(raw_token))
            .first()
        )
        expires_at = ensure_utc(user.password_reset_expires_at) if user is not None else None
        if user is None or expires_at is None or expires_at <= now:
            raise InvalidResetTokenError()
        user.password_hash = hash_password(new_password)
        user.password_changed_at = now
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        user.failed_login_attempts = 0
        user.locked_until = None
        db.commit()
        db.refresh(user)
    logger.info("Password reset completed", extra={"subject_id": str(user.id)})
    return user


def set_status(db: Session, user_id: int | str, status: AccountStatus, actor_id: str) -> User:
    """Admin action: change an account's status."""
    user = get_user(db, user_id)
    previous = user.status
    with _store_errors(db):
        user.status = AccountStatus(status).value
        db.commit()
        db.refresh(user)
    logger.info(
        "Account status changed",
        extra={"subject_id": str(user.id), "actor_id": actor_id, "before": previous, "after": user.status},
    )
    return user


def set_role(db: Session, user_id: int | str, role: Role, actor_id: str) -> User:
    """Admin action: change an account's role. Existing tokens keep the old role until they expire."""
    user = get_user(db, user_id)
    previous = user.role
    with _store_errors(db):
        user.role = Role(role).value
        db.commit()
        db.refresh(user)
    logger.info(
        "Account role changed",
        extra={"subject_id": str(user.id), "actor_id": actor_id, "before": previous, "after": user.role},
    )
    return user


def update_user(
    db: Session,
    user_id: int | str,
    *,
    actor_id: str,
    name: str | None = None,
    role: Role | None = None,
    status: AccountStatus | None = None,
) -> User:
    """Apply the given fields to an account. Callers decide which fields the actor may change."""
    user = get_user(db, user_id)
    changes: dict[str, str] = {}
    if name is not None:
        changes["name"] = name.strip()
    if role is not None:
        changes["role"] = Role(role).value
    if status is not None:
        changes["status"] = AccountStatus(status).value
    with _store_errors(db):
        for field_name, value in changes.items():
            setattr(user, field_name, value)
        db.commit()
        db.refresh(user)
    logger.info(
        "Account updated",
        extra={"subject_id": str(user.id), "actor_id": actor_id, "fields": sorted(changes)},
    )
    return user
