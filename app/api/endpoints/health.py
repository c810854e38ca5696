import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db, get_db_state
from app.schemas.user import HealthCheck, ServiceHealth

router = APIRouter()
group_tags = ["health"]

_started_at = time.monotonic()


@router.get(
    "/health",
    tags=group_tags,
    response_model=HealthCheck,
    status_code=status.HTTP_200_OK,
)
def get_health() -> HealthCheck:
    """Liveness probe"""
    return HealthCheck(status="oke")


@router.get(
    "/api/health",
    tags=group_tags,
    response_model=ServiceHealth,
    status_code=status.HTTP_200_OK,
)
def get_service_health(db: Session = Depends(get_db)) -> ServiceHealth:
    """
    Service report for uptime monitoring.
    Always 200 so load balancers keep the instance; `db` carries the real state.
    """
    return ServiceHealth(
        service=settings.SERVICE_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        db=get_db_state(db),
        uptime=int(time.monotonic() - _started_at),
        timestamp=datetime.now(timezone.utc),
    )
