from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserProfile(BaseModel):
    """Public view of a wallet identity"""

    address: str
    last_authenticated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ProfileResponse(BaseModel):
    """Response model for user profile"""

    success: bool = True
    user: UserProfile


class HealthCheck(BaseModel):
    status: str = "oke"


class ServiceHealth(BaseModel):
    """Detailed health report, always served with 200"""

    success: bool = True
    status: str = "ok"
    service: str
    version: str
    environment: str
    db: str
    uptime: int
    timestamp: datetime
