"""
Authentication Middleware
Handles API key authentication and tenant resolution
"""

from typing import Optional
from fastapi import Request

from call_relay.core.logging import get_logger
from call_relay.core.exceptions import InvalidAPIKeyError

logger = get_logger(__name__)


async def get_api_key(request: Request) -> Optional[str]:
    """Extract API key from request"""
    # Try header first
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return api_key

    # Try query parameter
    api_key = request.query_params.get("api_key")
    if api_key:
        return api_key

    # Try Authorization header (Bearer token)
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]

    return None


async def get_current_tenant_id(request: Request) -> str:
    """
    Dependency resolving the tenant that owns the request's API key

    Usage:
        @router.get("/endpoint")
        async def endpoint(tenant_id: str = Depends(get_current_tenant_id)):
            ...
    """
    if hasattr(request.state, "tenant_id"):
        return request.state.tenant_id

    api_key = await get_api_key(request)
    if not api_key:
        raise InvalidAPIKeyError("API key is required")

    repository = request.app.state.context.repository
    tenant_id = await repository.get_tenant_id_for_api_key(api_key)
    if not tenant_id:
        logger.warning("Rejected request with unknown API key")
        raise InvalidAPIKeyError()

    request.state.tenant_id = tenant_id
    return tenant_id
