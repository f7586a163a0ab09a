"""User listing, self-service updates and admin role/status management. Access is set in core.route_policies."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clubapi.api.v1.auth import get_current_identity
from clubapi.api.v1.errors import translate_errors
from clubapi.core.database import get_db
from clubapi.schemas.users import (
    DirectoryEntry,
    DirectoryResponse,
    RoleUpdateRequest,
    StatusUpdateRequest,
    UserListItem,
    UsersListResponse,
    UserUpdateRequest,
)
from clubapi.services import accounts
from clubapi.services.authorization import RequestIdentity, ensure_self_or_admin

router = APIRouter()


@router.get("", name="users.list", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List all accounts (admin only)."""
    with translate_errors():
        users = accounts.list_users(db)
    return UsersListResponse(users=[UserListItem.model_validate(u) for u in users])


@router.get("/directory", name="users.directory", response_model=DirectoryResponse)
def directory(
    _identity: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> DirectoryResponse:
    """Active members (id and name only) for pickers; any signed-in user."""
    with translate_errors():
        users = accounts.list_active_users(db)
    return DirectoryResponse(users=[DirectoryEntry.model_validate(u) for u in users])


@router.get("/{user_id}", name="users.get", response_model=UserListItem)
def get_user(
    user_id: int,
    identity: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> UserListItem:
    """Members may read their own record; admins may read any."""
    with translate_errors():
        ensure_self_or_admin(identity, str(user_id))
        user = accounts.get_user(db, user_id)
    return UserListItem.model_validate(user)


@router.put("/{user_id}", name="users.update", response_model=UserListItem)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    identity: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> UserListItem:
    """Members may update their own record; only admins change role or status."""
    role, status = (body.role, body.status) if identity.is_admin else (None, None)
    with translate_errors():
        ensure_self_or_admin(identity, str(user_id))
        user = accounts.update_user(
            db,
            user_id,
            actor_id=identity.subject_id,
            name=body.name,
            role=role,
            status=status,
        )
    return UserListItem.model_validate(user)

@router.patch("/{user_id}/status", name="users.update_status", response_model=UserListItem)
def update_status(
    user_id: int,
    body: StatusUpdateRequest,
    admin: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> UserListItem:
    """Activate, deactivate or suspend an account. Takes effect on the next request."""
    with translate_errors():
        user = accounts.set_status(db, user_id, body.status, actor_id=admin.subject_id)
    return UserListItem.model_validate(user)


@router.patch("/{user_id}/role", name="users.update_role", response_model=UserListItem)
def update_role(
    user_id: int,
    body: RoleUpdateRequest,
    admin: Annotated[RequestIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> UserListItem:
    """Change an account's role. Applies once the user logs in again."""
    with translate_errors():
        user = accounts.set_role(db, user_id, body.role, actor_id=admin.subject_id)
    return UserListItem.model_validate(user)
