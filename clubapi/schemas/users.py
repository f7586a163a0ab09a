"""Schemas for user listing and admin role/status updates."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clubapi.schemas.auth import AccountStatus, Role


class UserListItem(BaseModel):
    """User entry for admin list (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: Role
    status: AccountStatus
    last_login_at: datetime | None = None
    created_at: datetime | None = None


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[UserListItem]


class DirectoryEntry(BaseModel):
    """Minimal member entry for pickers available to any signed-in user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class DirectoryResponse(BaseModel):
    users: list[DirectoryEntry]


class StatusUpdateRequest(BaseModel):
    status: AccountStatus = Field(..., description="Active, Inactive or Suspended")


class RoleUpdateRequest(BaseModel):
    role: Role = Field(..., description="admin or member")


class UserUpdateRequest(BaseModel):
    """
    Partial update of a user record. role and status are applied only when the
    caller is an admin; for members they are dropped.
    """

    name: str | None = Field(default=None, min_length=2, max_length=100)
    role: Role | None = None
    status: AccountStatus | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        name = v.strip()
        if len(name) < 2:
            raise ValueError("Name must be between 2 and 100 characters")
        return name
