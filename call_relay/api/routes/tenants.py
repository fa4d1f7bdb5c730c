"""
Tenant configuration API Routes
Settings, inbound webhook registration, scheduling triggers and addons
"""

import secrets
import uuid
from typing import List

from fastapi import APIRouter, Depends, Request

from call_relay.api.deps import get_context
from call_relay.api.middleware.auth import get_current_tenant_id
from call_relay.core.exceptions import NotFoundError, ValidationError
from call_relay.core.logging import get_logger
from call_relay.db.models import InboundWebhookDB, SchedulingTriggerDB, TenantSettingsDB
from call_relay.models.webhook import (
    AddonToggle,
    InboundWebhookCreate,
    SchedulingTriggerCreate,
    TenantSettingsUpdate,
)
from call_relay.services.addons import SUPPORTED_ADDONS

logger = get_logger(__name__)

router = APIRouter(tags=["tenants"])


@router.put("/tenant/settings")
async def update_settings(
    body: TenantSettingsUpdate,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    """
    Update the tenant's OpenAI key and Twilio credentials.

    Omitted fields keep their stored value.
    """
    repository = get_context(request).repository
    current = await repository.get_tenant_settings(tenant_id) or TenantSettingsDB(tenant_id=tenant_id)
    updated = current.model_copy(update=body.model_dump(exclude_none=True))
    await repository.upsert_tenant_settings(updated)
    return {
        "success": True,
        "openai_configured": bool(updated.openai_api_key),
        "twilio_configured": bool(updated.twilio_account_sid and updated.twilio_auth_token),
    }


@router.post("/inbound-webhooks", status_code=201)
async def create_inbound_webhook(
    body: InboundWebhookCreate,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    """Register a `POST /webhook/{id}` endpoint for the voice platform"""
    context = get_context(request)
    webhook = InboundWebhookDB(
        id=f"wh_{secrets.token_urlsafe(16)}",
        tenant_id=tenant_id,
        name=body.name,
        secret=body.secret,
    )
    await context.repository.create_inbound_webhook(webhook)
    return {
        "id": webhook.id,
        "name": webhook.name,
        "url": f"{context.settings.api_base_url.rstrip('/')}/webhook/{webhook.id}",
        "has_secret": bool(webhook.secret),
        "created_at": webhook.created_at,
    }


@router.get("/inbound-webhooks")
async def list_inbound_webhooks(request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    webhooks = await get_context(request).repository.list_inbound_webhooks(tenant_id)
    return [
        {
            "id": w.id,
            "name": w.name,
            "is_active": w.is_active,
            "has_secret": bool(w.secret),
            "created_at": w.created_at,
        }
        for w in webhooks
    ]


@router.get("/scheduling-triggers", response_model=List[SchedulingTriggerDB])
async def list_scheduling_triggers(request: Request, tenant_id: str = Depends(get_current_tenant_id)):
    return await get_context(request).repository.list_scheduling_triggers(tenant_id)


@router.post("/scheduling-triggers", response_model=SchedulingTriggerDB, status_code=201)
async def create_scheduling_trigger(
    body: SchedulingTriggerCreate,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    trigger = SchedulingTriggerDB(
        id=f"sched_{uuid.uuid4().hex}",
        tenant_id=tenant_id,
        name=body.name,
        destination_url=body.destination_url,
        send_enhanced_data=body.send_enhanced_data,
    )
    return await get_context(request).repository.create_scheduling_trigger(trigger)


@router.delete("/scheduling-triggers/{trigger_id}")
async def delete_scheduling_trigger(
    trigger_id: str, request: Request, tenant_id: str = Depends(get_current_tenant_id)
):
    if not await get_context(request).repository.delete_scheduling_trigger(tenant_id, trigger_id):
        raise NotFoundError("Scheduling trigger", trigger_id)
    return {"success": True}


@router.put("/addons")
async def toggle_addon(
    body: AddonToggle,
    request: Request,
    tenant_id: str = Depends(get_current_tenant_id),
):
    if body.addon_type not in SUPPORTED_ADDONS:
        raise ValidationError(f"Unknown addon: {body.addon_type}", field="addon_type")
    repository = get_context(request).repository
    await repository.set_addon(tenant_id, body.addon_type, body.enabled)
    return {"addon_type": body.addon_type, "enabled": body.enabled}
