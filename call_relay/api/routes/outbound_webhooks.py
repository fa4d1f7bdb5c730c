"""
Outbound Webhook API Routes
Tenant-managed destinations for call.started / call.ended events
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, Request

from call_relay.api.deps import get_context
from call_relay.api.middleware.auth import get_current_tenant_id
from call_relay.core.exceptions import NotFoundError
from call_relay.core.logging import get_logger
from call_relay.db.models import OutboundWebhookDB, OutboundWebhookLogDB
from call_relay.models.webhook import (
    OutboundWebhookCreate,
    OutboundWebhookResponse,
    OutboundWebhookUpdate,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/outbound-webhooks", tags=["outbound-webhooks"])


def _to_response(webhook: OutboundWebhookDB) -> OutboundWebhookResponse:
    return OutboundWebhookResponse(
        id=webhook.id,
        name=webhook.name,
        destination_url=webhook.destination_url,
        events=sorted(webhook.event_set),
        is_active=webhook.is_active,
        created_at=webhook.created_at,
        updated_at=webhook.updated_at,
    )


@router.get("", response_model=List[OutboundWebhookResponse])
async def list_webhooks(request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    webhooks = await get_context(request).repository.list_outbound_webhooks(tenant_id)
    return [_to_response(w) for w in webhooks]


@router.post("", response_model=OutboundWebhookResponse, status_code=201)
async def create_webhook(
    body: OutboundWebhookCreate,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    webhook = OutboundWebhookDB(
        id=f"obwh_{uuid.uuid4().hex}",
        tenant_id=tenant_id,
        name=body.name,
        destination_url=body.destination_url,
        events=",".join(body.events),
    )
    await get_context(request).repository.create_outbound_webhook(webhook)
    logger.info(f"Created outbound webhook {webhook.id} for tenant {tenant_id}")
    return _to_response(webhook)


@router.get("/{webhook_id}", response_model=OutboundWebhookResponse)
async def get_webhook(webhook_id: str, request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    webhook = await get_context(request).repository.get_outbound_webhook(tenant_id, webhook_id)
    if webhook is None:
        raise NotFoundError("Outbound webhook", webhook_id)
    return _to_response(webhook)


@router.put("/{webhook_id}", response_model=OutboundWebhookResponse)
async def update_webhook(
    webhook_id: str,
    body: OutboundWebhookUpdate,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    updates = body.model_dump(exclude_none=True)
    if "events" in updates:
        updates["events"] = ",".join(updates["events"])

    webhook = await get_context(request).repository.update_outbound_webhook(tenant_id, webhook_id, updates)
    if webhook is None:
        raise NotFoundError("Outbound webhook", webhook_id)
    return _to_response(webhook)


@router.delete("/{webhook_id}")
async def delete_webhook(webhook_id: str, request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    deleted = await get_context(request).repository.delete_outbound_webhook(tenant_id, webhook_id)
    if not deleted:
        raise NotFoundError("Outbound webhook", webhook_id)
    return {"success": True}


@router.get("/{webhook_id}/logs", response_model=List[OutboundWebhookLogDB])
async def webhook_logs(
    webhook_id: str,
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: str = Depends(get_current_tenant_id),
):
    repository = get_context(request).repository
    if await repository.get_outbound_webhook(tenant_id, webhook_id) is None:
        raise NotFoundError("Outbound webhook", webhook_id)
    return await repository.list_outbound_webhook_logs(webhook_id, limit, offset)
