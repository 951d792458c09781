"""Health check endpoint with database connectivity and object storage status."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(request: Request, db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"
    configured = getattr(request.app.state, "object_storage", None) is not None

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=db_status,
        object_storage="configured" if configured else "not_configured",
    )
