"""ORM model for club accounts (auth, RBAC and login bookkeeping)."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from clubapi.models.base import Base


class User(Base):
    """
    Club account used for JWT authentication and role-based access control.

    role: 'admin' or 'member'
    status: 'Active', 'Inactive' or 'Suspended'
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'member')", name="ck_users_role"),
        CheckConstraint("status IN ('Active', 'Inactive', 'Suspended')", name="ck_users_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="member")
    status = Column(String(16), nullable=False, default="Active", index=True)

    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
