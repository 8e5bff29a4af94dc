"""
System health and monitoring API routes
"""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# Response models
class SchedulerStatus(BaseModel):
    pending_timers: int
    queued: int
    in_flight: int
    max_concurrent: int

class CloudStatus(BaseModel):
    authenticated: bool
    request_count: int
    error_count: int

class HealthResponse(BaseModel):
    status: str
    records: int
    scheduler: SchedulerStatus
    cloud: Optional[CloudStatus] = None
    timestamp: datetime

def create_system_routes(registry, controller, cloud_client=None):
    """Create system monitoring routes"""
    router = APIRouter(prefix="/api/system", tags=["system"])

    @router.get("/health", response_model=HealthResponse)
    async def system_health():
        """System health check"""
        cloud_status = None
        if cloud_client:
            cloud_status = CloudStatus(
                authenticated=cloud_client.authenticated,
                request_count=cloud_client.request_count,
                error_count=cloud_client.error_count
            )

        status = "healthy"
        if cloud_client and not cloud_client.authenticated:
            status = "degraded"

        return HealthResponse(
            status=status,
            records=len(registry),
            scheduler=SchedulerStatus(
                pending_timers=len(controller.pending_timers),
                queued=len(controller.queued),
                in_flight=len(controller.in_flight),
                max_concurrent=controller.options.max_concurrent
            ),
            cloud=cloud_status,
            timestamp=datetime.now(timezone.utc)
        )

    return router
