"""Core configuration, database sessions, token codec and route policies."""

from clubapi.core.config import get_settings, settings
from clubapi.core.database import get_db, session_scope
from clubapi.core.security import get_token_codec

__all__ = ["get_settings", "settings", "get_db", "session_scope", "get_token_codec"]
