"""
Per-request access decision: token verification, account checks and role gating.

The decision walks Unauthenticated -> TokenPresent -> TokenValid -> RoleChecked
-> Admitted and raises at the first failed step. It owns no state; the codec
and the credential store are passed in by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from clubapi.core.security import TokenCodec, TokenError
from clubapi.schemas.auth import AccountStatus, Role, RoutePolicy
from clubapi.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

_TOKEN_FAILURE_MESSAGES = {
    "expired": "Token has expired",
    "invalid_signature": "Invalid token",
    "malformed": "Invalid token",
}


class AuthorizationError(Exception):
    """Base class for denied requests; `reason` says which check failed."""

    code = "unauthorized"
    status_code = 401

    def __init__(self, message: str, reason: str) -> None:
        self.message = message
        self.reason = reason
        super().__init__(message)


class UnauthorizedError(AuthorizationError):
    """Missing, invalid or no longer acceptable credentials (401)."""


class ForbiddenError(AuthorizationError):
    """Valid identity without the required permission (403)."""

    code = "forbidden"
    status_code = 403


@dataclass(frozen=True)
class RequestIdentity:
    """Verified caller attached to the request and handed to handlers."""

    subject_id: str
    role: Role
    issued_at: datetime
    # None when the store was not consulted.
    status: AccountStatus | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def authorize_request(
    policy: RoutePolicy,
    token: str | None,
    codec: TokenCodec,
    store: CredentialStore | None = None,
) -> RequestIdentity | None:
    """
    Decide whether a request may proceed under policy.

    Returns the caller's identity, or None for anonymous access on PUBLIC and
    OPTIONAL_AUTH routes. Raises UnauthorizedError / ForbiddenError on denial.
    Store failures (StoreUnavailableError) propagate on every policy.
    """
    if policy is RoutePolicy.PUBLIC:
        return None
    if policy is RoutePolicy.OPTIONAL_AUTH:
        return _optional_identity(token, codec, store)

    if not token:
        raise UnauthorizedError("Not authenticated", reason="missing_token")
    identity = _authenticate(token, codec, store)
    if policy is RoutePolicy.ADMIN_ONLY and not identity.is_admin:
        logger.info(
            "Admin route refused",
            extra={"subject_id": identity.subject_id, "role": identity.role.value},
        )
        raise ForbiddenError("Admin access required", reason="admin_required")
    return identity


def ensure_self_or_admin(identity: RequestIdentity, subject_id: str) -> None:
    """Members may act only on their own record; admins on any."""
    if identity.is_admin or identity.subject_id == str(subject_id):
        return
    raise ForbiddenError("Not authorized to access this resource", reason="not_owner")


def _authenticate(
    token: str,
    codec: TokenCodec,
    store: CredentialStore | None,
) -> RequestIdentity:
    try:
        claims = codec.verify(token)
    except TokenError as e:
        logger.info("Token rejected", extra={"reason": e.reason})
        raise UnauthorizedError(_TOKEN_FAILURE_MESSAGES[e.reason], reason=e.reason) from e

    if store is None:
        return RequestIdentity(
            subject_id=claims.subject_id,
            role=claims.role,
            issued_at=claims.issued_at,
        )

    credential = store.find_by_id(claims.subject_id)
    if credential is None:
        raise UnauthorizedError("User no longer exists", reason="user_not_found")
    if credential.password_changed_at is not None:
        # iat has whole-second precision.
        changed_at = credential.password_changed_at.replace(microsecond=0)
        if claims.issued_at < changed_at:
            raise UnauthorizedError(
                "User recently changed password. Please login again.",
                reason="password_changed",
            )
    if not credential.is_active:
        logger.info(
            "Inactive account refused",
            extra={"subject_id": credential.subject_id, "status": credential.status.value},
        )
        raise ForbiddenError(
            f"Account is {credential.status.value.lower()}. Please contact an administrator.",
            reason="account_inactive",
        )
    # Role comes from the token: role changes apply from the next login.
    return RequestIdentity(
        subject_id=claims.subject_id,
        role=claims.role,
        issued_at=claims.issued_at,
        status=credential.status,
    )


def _optional_identity(
    token: str | None,
    codec: TokenCodec,
    store: CredentialStore | None,
) -> RequestIdentity | None:
    if not token:
        return None
    try:
        return _authenticate(token, codec, store)
    except AuthorizationError as e:
        logger.debug("Optional auth fell back to anonymous", extra={"reason": e.reason})
        return None
