"""SQLAlchemy ORM models."""

from clubapi.models.base import Base
from clubapi.models.user import User

__all__ = ["Base", "User"]
