"""Map auth-core and account exceptions to HTTPException with a stable {code, message} body."""

import math
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta

from fastapi import HTTPException, status

from clubapi.services.accounts import AccountError, AccountLockedError
from clubapi.services.authorization import AuthorizationError
from clubapi.services.credential_store import StoreUnavailableError
from clubapi.services.rate_limiter import RateLimitDecision, RateLimitedError


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    """X-RateLimit-* headers for a decision; Retry-After is added when denied."""
    reset_at = datetime.now(UTC) + timedelta(seconds=decision.reset_after)
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": reset_at.isoformat(timespec="seconds"),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(max(1, math.ceil(decision.retry_after)))
    return headers


def api_error(exc: Exception) -> HTTPException:
    """Build the HTTPException for a known core exception."""
    if isinstance(exc, AuthorizationError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return HTTPException(
            status_code=exc.status_code,
            detail={"code": exc.code, "message": exc.message, "reason": exc.reason},
            headers=headers,
        )
    if isinstance(exc, RateLimitedError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "code": "rate_limited",
                "message": exc.message,
                "retry_after": max(1, math.ceil(exc.decision.retry_after)),
            },
            headers=rate_limit_headers(exc.decision),
        )
    if isinstance(exc, StoreUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "store_unavailable", "message": "Service temporarily unavailable"},
        )
    if isinstance(exc, AccountLockedError):
        return HTTPException(
            status_code=exc.status_code,
            detail={
                "code": exc.code,
                "message": exc.message,
                "locked_until": exc.locked_until.isoformat(timespec="seconds"),
            },
        )
    if isinstance(exc, AccountError):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return HTTPException(
            status_code=exc.status_code,
            detail={"code": exc.code, "message": exc.message},
            headers=headers,
        )
    raise TypeError(f"No HTTP mapping for {type(exc).__name__}")


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise core exceptions from the wrapped block as HTTPException."""
    try:
        yield
    except (AuthorizationError, AccountError, RateLimitedError, StoreUnavailableError) as e:
        raise api_error(e) from e
