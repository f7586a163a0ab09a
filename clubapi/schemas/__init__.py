"""Pydantic request/response schemas."""

from clubapi.schemas.auth import (
    AccountStatus,
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    Role,
    RoutePolicy,
    SessionResponse,
    TokenResponse,
)
from clubapi.schemas.health import HealthResponse
from clubapi.schemas.users import (
    DirectoryEntry,
    DirectoryResponse,
    RoleUpdateRequest,
    StatusUpdateRequest,
    UserListItem,
    UsersListResponse,
    UserUpdateRequest,
)

__all__ = [
    "AccountStatus",
    "CurrentUser",
    "DirectoryEntry",
    "DirectoryResponse",
    "ForgotPasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "PasswordUpdateRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "Role",
    "RoleUpdateRequest",
    "RoutePolicy",
    "SessionResponse",
    "StatusUpdateRequest",
    "TokenResponse",
    "UserListItem",
    "UsersListResponse",
    "UserUpdateRequest",
]
