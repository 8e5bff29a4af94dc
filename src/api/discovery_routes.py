"""
Discovery admin API routes
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime, timezone
import logging

from discovery.diagnostics import STATE_LABELS, format_summary, redacted_record

logger = logging.getLogger(__name__)

# Response models
class SummaryResponse(BaseModel):
    verified: int
    unverified: int
    candidates: int
    offline: int
    text: str

class ProbeInfo(BaseModel):
    last_probe_at: Optional[int] = None
    last_success_at: Optional[int] = None
    failure_count: int = 0
    backoff_until: Optional[int] = None

class FailureDetail(BaseModel):
    time: int
    status_code: Optional[int] = None
    message: Optional[str] = None

class RecordResponse(BaseModel):
    device_id: str
    name: str
    category: str
    product_id: Optional[str] = None
    state: str
    state_label: str
    online: Optional[bool] = None
    probe: ProbeInfo
    last_failure: Optional[FailureDetail] = None

class ActionResponse(BaseModel):
    action: str
    device_id: str
    state: Optional[str] = None
    timestamp: datetime

class RetryAllResponse(BaseModel):
    scheduled: int
    timestamp: datetime

def create_discovery_routes(registry, admin):
    """Create discovery management routes"""
    router = APIRouter(prefix="/api/discovery", tags=["discovery"])

    def _action_response(action: str, device_id: str) -> ActionResponse:
        state = registry.get_state(device_id)
        return ActionResponse(
            action=action,
            device_id=device_id,
            state=state.value if state else None,
            timestamp=datetime.now(timezone.utc)
        )

    @router.get("/summary", response_model=SummaryResponse)
    async def get_summary():
        """Counts of records by discovery state"""
        counts = admin.summary()
        return SummaryResponse(text=format_summary(counts), **counts)

    @router.get("/records", response_model=List[RecordResponse])
    async def get_records():
        """All discovery records with redacted device ids"""
        records = []
        for record in registry.get_records():
            data = redacted_record(record)
            data['state_label'] = STATE_LABELS[record.state]
            records.append(RecordResponse(**data))
        return records

    @router.get("/diagnostics")
    async def get_diagnostics():
        """Redacted diagnostics snapshot for support requests"""
        try:
            return admin.diagnostics()
        except Exception as e:
            logger.error(f"Error building discovery diagnostics: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @router.post("/devices/{device_id}/retry", response_model=ActionResponse)
    async def retry_device(device_id: str):
        """Retry validation for one device immediately"""
        if not admin.retry(device_id):
            raise HTTPException(status_code=404, detail="Device not found")
        return _action_response("retry", device_id)

    @router.post("/devices/{device_id}/force-confirm", response_model=ActionResponse)
    async def force_confirm_device(device_id: str):
        """Expose a device without validation"""
        if not admin.force_confirm(device_id):
            raise HTTPException(status_code=404, detail="Device not found")
        return _action_response("force_confirm", device_id)

    @router.post("/devices/{device_id}/remove", response_model=ActionResponse)
    async def remove_device(device_id: str):
        """Remove a candidate or unconfirm an exposed device"""
        action = admin.remove(device_id)
        if action is None:
            raise HTTPException(status_code=404, detail="Device not found")
        return _action_response(action, device_id)

    @router.post("/retry-all", response_model=RetryAllResponse)
    async def retry_all():
        """Retry validation for every device that is not verified"""
        scheduled = admin.retry_all()
        return RetryAllResponse(scheduled=scheduled, timestamp=datetime.now(timezone.utc))

    return router
