"""JWT login/registration routes and auth dependencies (route policy gate, rate limits)."""

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clubapi.api.v1.errors import rate_limit_headers, translate_errors
from clubapi.core.config import Settings, get_settings
from clubapi.core.database import get_db
from clubapi.core.route_policies import policy_for
from clubapi.core.security import TokenCodec, get_token_codec
from clubapi.models import User
from clubapi.schemas.auth import (
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionResponse,
    TokenResponse,
)
from clubapi.services import accounts
from clubapi.services.authorization import RequestIdentity, authorize_request
from clubapi.services.credential_store import CredentialStore, SqlCredentialStore
from clubapi.services.rate_limiter import (
    FORGOT_PASSWORD_POLICY_NAME,
    LOGIN_POLICY_NAME,
    RateLimiter,
    get_rate_limiter,
    policies_from_settings,
)

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

# Generic answer so forgot-password does not reveal which e-mails exist.
FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent."


def get_credential_store(db: Annotated[Session, Depends(get_db)]) -> CredentialStore:
    """Dependency: credential lookups over the request's DB session."""
    return SqlCredentialStore(db)


def enforce_route_policy(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RequestIdentity | None:
    """
    Router-level dependency: apply the policy configured for the matched route.

    Returns the verified identity (None for anonymous access). Raises 401/403
    per the policy, 503 if the credential store is down.
    """
    route = request.scope.get("route")
    policy = policy_for(getattr(route, "name", None))
    token = credentials.credentials if credentials is not None else None
    with translate_errors():
        return authorize_request(
            policy,
            token,
            codec,
            store if settings.CHECK_ACCOUNT_STATUS else None,
        )


def get_current_identity(
    identity: Annotated[RequestIdentity | None, Depends(enforce_route_policy)],
) -> RequestIdentity:
    """Dependency: identity of the caller on an authenticated route."""
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "Not authenticated", "reason": "missing_token"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def rate_limit(policy_name: str) -> Callable[..., None]:
    """Dependency factory: count an attempt for the client IP under the named policy."""

    def dependency(
        request: Request,
        response: Response,
        settings: Annotated[Settings, Depends(get_settings)],
        limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    ) -> None:
        policy = policies_from_settings(settings)[policy_name]
        client_key = request.client.host if request.client is not None else "unknown"
        with translate_errors():
            decision = limiter.check(policy, client_key)
        response.headers.update(rate_limit_headers(decision))

    return dependency


def _token_response(user: User, codec: TokenCodec) -> TokenResponse:
    return TokenResponse(
        access_token=codec.issue(user.id, user.role),
        token_type="bearer",
        expires_in=int(codec.ttl.total_seconds()),
        user=CurrentUser.model_validate(user),
    )


@router.post(
    "/register",
    name="auth.register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> TokenResponse:
    """Create an Active member account and return a token for it."""
    with translate_errors():
        user = accounts.register_user(db, name=body.name, email=body.email, password=body.password)
    return _token_response(user, codec)


@router.post(
    "/login",
    name="auth.login",
    response_model=TokenResponse,
    dependencies=[Depends(rate_limit(LOGIN_POLICY_NAME))],
)
def login(
    body: LoginRequest,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """
    Authenticate with e-mail and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    with translate_errors():
        credential = accounts.authenticate(store, db, body.email, body.password, settings)
        user = accounts.get_user(db, credential.subject_id)
    return _token_response(user, codec)


@router.get("/session", name="auth.session", response_model=SessionResponse)
def session(
    identity: Annotated[RequestIdentity | None, Depends(enforce_route_policy)],
) -> SessionResponse:
    """Report whether the caller presented a usable token; never fails on a bad one."""
    if identity is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(
        authenticated=True,
        subject_id=identity.subject_id,
        role=identity.role,
        issued_at=identity.issued_at,
    )


@router.get("/me", name="auth.me", response_model=CurrentUser)
def me(
    identity: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    with translate_errors():
        user = accounts.get_user(db, identity.subject_id)
    return CurrentUser.model_validate(user)


@router.post("/logout", name="auth.logout", response_model=MessageResponse)
def logout(
    identity: Annotated[RequestIdentity, Depends(get_current_identity)],
) -> MessageResponse:
    """Tokens are not revoked server-side; the client discards its copy."""
    logger.info("Logout", extra={"subject_id": identity.subject_id})
    return MessageResponse(message="Logged out successfully")


@router.put("/password", name="auth.update_password", response_model=TokenResponse)
def update_password(
    body: PasswordUpdateRequest,
    identity: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
    codec: Annotated[TokenCodec, Depends(get_token_codec)],
) -> TokenResponse:
    """Change own password. Older tokens stop working; a fresh token is returned."""
    with translate_errors():
        user = accounts.update_password(
            db, identity.subject_id, body.current_password, body.new_password
        )
    return _token_response(user, codec)


@router.post(
    "/forgot-password",
    name="auth.forgot_password",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit(FORGOT_PASSWORD_POLICY_NAME))],
)
def forgot_password(
    body: ForgotPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MessageResponse:
    """Issue a reset token. E-mail delivery is external; in dev the token is echoed back."""
    with translate_errors():
        raw_token = accounts.request_password_reset(db, body.email, settings)
    echoed = raw_token if settings.APP_ENV == "dev" else None
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE, reset_token=echoed)


@router.post("/reset-password", name="auth.reset_password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    with translate_errors():
        accounts.reset_password(db, body.token, body.password)
    return MessageResponse(message="Password reset successful. Please log in with your new password.")
