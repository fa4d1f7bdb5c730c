"""
Inbound voice platform events
"""

from fastapi import APIRouter, Request

from call_relay.api.deps import get_context
from call_relay.api.middleware.webhook_security import SECRET_HEADER, verify_inbound_secret
from call_relay.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["ingest"])


@router.post("/webhook/{webhook_id}")
async def receive_event(webhook_id: str, request: Request):
    """
    Receive a status update or end-of-call report from the voice platform.

    The response is returned once the event is persisted; CRM sync,
    outbound webhooks and enrichment continue in the background.
    """
    ingress = get_context(request).ingress

    webhook = await ingress.resolve_webhook(webhook_id)
    verify_inbound_secret(webhook, request.headers.get(SECRET_HEADER))

    body = await request.body()
    return await ingress.handle(webhook, body)
