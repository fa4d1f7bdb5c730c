"""
Call record API Routes
Recordings list, call details, live calls, keywords and cache statistics
"""

from fastapi import APIRouter, Depends, Query, Request

from call_relay.api.deps import get_context
from call_relay.api.middleware.auth import get_current_tenant_id
from call_relay.core.exceptions import NotFoundError
from call_relay.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["calls"])


@router.get("/calls")
async def list_calls(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    tenant_id: str = Depends(get_current_tenant_id),
):
    """Paginated call records, served through the recordings cache"""
    context = get_context(request)
    cache = context.cache

    async def load():
        calls = await context.repository.list_calls(tenant_id, limit, (page - 1) * limit)
        total = await context.repository.count_calls(tenant_id)
        return {
            "calls": [call.model_dump(exclude={"raw_payload"}) for call in calls],
            "total": total,
            "page": page,
            "limit": limit,
        }

    return await cache.get_or_set(cache.recordings_key(tenant_id, page, limit), cache.ttl_recordings, load)


@router.get("/calls/{call_id}")
async def get_call(call_id: str, request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    context = get_context(request)
    cache = context.cache

    async def load():
        call = await context.repository.get_call(tenant_id, call_id)
        return call.model_dump() if call else None

    data = await cache.get_or_set(cache.call_key(tenant_id, call_id), cache.ttl_call_details, load)
    if data is None:
        raise NotFoundError("Call", call_id)
    return data


@router.get("/active-calls")
async def list_active_calls(request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    active = await get_context(request).repository.list_active_calls(tenant_id)
    return {"active_calls": [a.model_dump() for a in active], "count": len(active)}


@router.get("/keywords")
async def list_keywords(
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    tenant_id: str = Depends(get_current_tenant_id),
):
    keywords = await get_context(request).repository.list_keywords(tenant_id, limit)
    return {"keywords": [k.model_dump() for k in keywords]}


@router.get("/cache/stats")
async def cache_stats(request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    return await get_context(request).cache.stats(tenant_id)
