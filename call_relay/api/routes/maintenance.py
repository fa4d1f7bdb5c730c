"""
Maintenance API Routes
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from call_relay.api.deps import get_context
from call_relay.api.middleware.auth import get_current_tenant_id
from call_relay.tasks.maintenance_tasks import cleanup_stale_active_calls

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post("/active-calls/cleanup")
async def cleanup_active_calls(
    request: Request,
    stale_seconds: Optional[int] = Query(default=None, ge=0),
    tenant_id: str = Depends(get_current_tenant_id),
):
    """Remove this tenant's live-call rows that stopped receiving status events"""
    context = get_context(request)
    threshold = stale_seconds if stale_seconds is not None else context.settings.active_call_stale_seconds
    deleted = await cleanup_stale_active_calls(context.repository, threshold, tenant_id=tenant_id)
    if deleted:
        await context.cache.invalidate_tenant(tenant_id)
    return {"success": True, "deleted": deleted}
