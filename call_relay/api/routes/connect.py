"""
CRM connection API Routes
OAuth authorization, connection status and sync logs per provider
"""

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from call_relay.api.deps import get_context
from call_relay.api.middleware.auth import get_current_tenant_id
from call_relay.api.middleware.webhook_security import OAuthStateSigner
from call_relay.core.exceptions import CallRelayException
from call_relay.core.logging import get_logger
from call_relay.models.integration import (
    InitiateResponse,
    IntegrationStatus,
    SyncLogEntry,
    SyncLogPage,
    SyncStatus,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/connect", tags=["integrations"])


def _signer(request: Request) -> OAuthStateSigner:
    return OAuthStateSigner(get_context(request).settings.secret_key)


def _supported(request: Request, provider: str) -> str:
    """Raises UnsupportedProviderError for unknown provider names"""
    return get_context(request).vault.provider(provider).name


def _dashboard_redirect(request: Request, provider: str, outcome: str) -> RedirectResponse:
    dashboard_url = get_context(request).settings.dashboard_url
    separator = "&" if "?" in dashboard_url else "?"
    return RedirectResponse(
        f"{dashboard_url}{separator}{urlencode({provider: outcome})}", status_code=302
    )


@router.get("/{provider}/initiate", response_model=InitiateResponse)
async def initiate_connection(
    provider: str,
    request: Request,
    instance_url: Optional[str] = Query(default=None),
    tenant_id: str = Depends(get_current_tenant_id),
):
    """
    Build the provider authorization URL for the current tenant.

    Dynamics 365 requires `instance_url` (e.g. https://org.crm.dynamics.com).
    """
    _supported(request, provider)
    vault = get_context(request).vault
    instance_url = instance_url.rstrip("/") if instance_url else None
    state = _signer(request).sign(tenant_id, provider, instance_url)
    url = vault.build_authorization_url(provider, state, instance_url)
    return InitiateResponse(url=url)


@router.get("/{provider}/callback", include_in_schema=False)
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
):
    """Provider redirect target; always lands the user back on the dashboard."""
    _supported(request, provider)
    if error or not code:
        logger.warning(f"{provider} authorization declined: {error or 'missing code'}")
        return _dashboard_redirect(request, provider, "error")

    try:
        data = _signer(request).verify(state, provider)
        await get_context(request).vault.exchange_code(
            data["tenant_id"], provider, code, data.get("instance_url")
        )
    except CallRelayException as e:
        logger.error(f"{provider} OAuth callback failed: {e.message}")
        return _dashboard_redirect(request, provider, "error")

    return _dashboard_redirect(request, provider, "connected")


@router.get("/{provider}/status", response_model=IntegrationStatus)
async def connection_status(
    provider: str,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    _supported(request, provider)
    token = await get_context(request).vault.status(tenant_id, provider)
    if token is None:
        return IntegrationStatus(provider=provider, connected=False)
    return IntegrationStatus(
        provider=provider,
        connected=True,
        instance_url=token.instance_url,
        expires_at=token.expires_at,
        connected_at=token.created_at,
    )


@router.delete("/{provider}")
async def disconnect(
    provider: str,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    """Remove the stored tokens for this provider"""
    _supported(request, provider)
    removed = await get_context(request).vault.disconnect(tenant_id, provider)
    return {"success": True, "disconnected": removed}


@router.get("/{provider}/sync-logs", response_model=SyncLogPage)
async def sync_logs(
    provider: str,
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    status: Optional[SyncStatus] = Query(default=None),
    tenant_id: str = Depends(get_current_tenant_id),
):
    _supported(request, provider)
    repository = get_context(request).repository
    status_value = status.value if status else None
    logs = await repository.list_sync_logs(provider, tenant_id, limit, offset, status_value)
    total = await repository.count_sync_logs(provider, tenant_id, status_value)
    return SyncLogPage(
        logs=[SyncLogEntry(**log.model_dump()) for log in logs],
        total=total,
        limit=limit,
        offset=offset,
    )
