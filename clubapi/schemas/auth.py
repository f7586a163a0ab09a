"""Request/response schemas for auth endpoints, plus the role/status/route-policy enums."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Coarse permission class carried in tokens."""

    ADMIN = "admin"
    MEMBER = "member"


class AccountStatus(str, Enum):
    """Account status; only Active accounts may authenticate."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"


class RoutePolicy(str, Enum):
    """Access requirement attached to a route by name."""

    PUBLIC = "public"
    OPTIONAL_AUTH = "optional_auth"
    AUTHENTICATED = "authenticated"
    ADMIN_ONLY = "admin_only"


def _normalize_email(value: str) -> str:
    """Trim and lower-case an e-mail; require a single @ with a dotted domain."""
    email = value.strip().lower()
    local, sep, domain = email.partition("@")
    if not sep or not local or "@" in domain or "." not in domain.strip("."):
        raise ValueError("Invalid email format")
    if any(ch.isspace() for ch in email):
        raise ValueError("Invalid email format")
    return email


def _check_password_strength(value: str) -> str:
    """New passwords need at least one letter and one number."""
    if not any(ch.isdigit() for ch in value):
        raise ValueError("Password must contain at least one number")
    if not any(ch.isalpha() for ch in value):
        raise ValueError("Password must contain at least one letter")
    return value


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=3, max_length=254, description="Account e-mail")
    password: str = Field(..., min_length=1, max_length=128, description="Password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class RegisterRequest(BaseModel):
    """Self-registration of a new member account."""

    name: str = Field(..., min_length=2, max_length=100, description="Display name")
    email: str = Field(..., min_length=3, max_length=254, description="Account e-mail")
    password: str = Field(..., min_length=8, max_length=128, description="Password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password_strength(v)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        name = v.strip()
        if len(name) < 2:
            raise ValueError("Name must be between 2 and 100 characters")
        return name


class PasswordUpdateRequest(BaseModel):
    """Self-service password change; the current password must be supplied."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password_strength(v)


class ForgotPasswordRequest(BaseModel):
    """Start a password reset for the given e-mail."""

    email: str = Field(..., min_length=3, max_length=254)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class ResetPasswordRequest(BaseModel):
    """Finish a password reset with the token issued by forgot-password."""

    token: str = Field(..., min_length=16, max_length=256)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password_strength(v)


class CurrentUser(BaseModel):
    """Public view of an account (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: Role
    status: AccountStatus


class TokenResponse(BaseModel):
    """JWT access token returned after login, registration or a password change."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: CurrentUser


class SessionResponse(BaseModel):
    """Result of the optional-auth session probe."""

    authenticated: bool
    subject_id: str | None = None
    role: Role | None = None
    issued_at: datetime | None = None


class MessageResponse(BaseModel):
    """Plain acknowledgement; reset_token is only filled in when APP_ENV=dev."""

    message: str
    reset_token: str | None = None
