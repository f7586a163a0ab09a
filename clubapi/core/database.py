"""Engine and session factory for the users store (PostgreSQL via psycopg2)."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from clubapi.core.config import Settings, settings

logger = logging.getLogger(__name__)


def build_engine(config: Settings) -> Engine:
    """Engine that checks connections on checkout; pool limits come from settings."""
    return create_engine(
        config.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=config.DATABASE_POOL_SIZE,
        pool_timeout=config.DATABASE_POOL_TIMEOUT_SECONDS,
        echo=config.DEBUG,
    )


engine = build_engine(settings)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; the route gate and the handler share it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for code running outside a request (CLI scripts)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the users store is reachable."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Users store unreachable: %s", type(e).__name__)
        return False
    return True
