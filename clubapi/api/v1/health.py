"""Health check endpoint with credential store connectivity."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clubapi.core.config import Settings, get_settings
from clubapi.core.database import check_db_connected, get_db
from clubapi.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", name="health.get", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """
    Report service status; degraded when the users table cannot be reached,
    since no login or protected request can succeed then.
    """
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        credential_store="connected" if connected else "disconnected",
    )
