"""
Outbound Webhook Dispatcher
Delivers call.started / call.ended events to tenant-registered destinations
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from call_relay.core.logging import get_logger
from call_relay.db.models import OutboundWebhookDB, OutboundWebhookLogDB
from call_relay.db.repository import CallRelayRepository
from call_relay.models.webhook import OutboundEvent

logger = get_logger(__name__)

USER_AGENT = "Call-Relay/1.0"
MAX_LOGGED_BODY = 1000


def build_payload(
    event_type: str,
    call_id: str,
    customer_phone: Optional[str] = None,
    assistant_name: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    ended_reason: Optional[str] = None,
    summary: Optional[str] = None,
    structured_data: Optional[Dict[str, Any]] = None,
    conversation: Optional[List[Dict[str, str]]] = None,
    recording_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Normalized event body sent to every destination."""
    payload = {
        "event": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "call_id": call_id,
        "customer_phone": customer_phone,
        "assistant_name": assistant_name or "AI Assistant",
    }

    if event_type == OutboundEvent.CALL_STARTED.value:
        payload["status"] = "ringing"
        return payload

    payload.update({
        "duration_seconds": duration_seconds or 0,
        "ended_reason": ended_reason or "unknown",
        "summary": summary or "",
        "structured_data": structured_data or {},
        "conversation": conversation or [],
        "recording_url": recording_url,
    })
    return payload


class OutboundWebhookDispatcher:
    """POSTs one payload to each subscribed destination, logging every attempt."""

    def __init__(self, repository: CallRelayRepository, http_client: httpx.AsyncClient, timeout: float = 10.0):
        self.repository = repository
        self.http_client = http_client
        self.timeout = timeout

    async def dispatch(
        self, tenant_id: str, event_type: str, call_id: str, payload: Dict[str, Any]
    ) -> List[OutboundWebhookLogDB]:
        webhooks = await self.repository.list_outbound_webhooks(tenant_id, active_only=True)
        subscribed = [w for w in webhooks if event_type in w.event_set]
        if not subscribed:
            logger.debug(f"No outbound webhooks subscribed to {event_type} for tenant {tenant_id}")
            return []

        logs = []
        for webhook in subscribed:
            # One destination failing must not stop the others
            try:
                logs.append(await self._deliver(webhook, event_type, call_id, payload))
            except Exception as e:
                logger.error(f"Outbound webhook {webhook.id} delivery crashed: {e}", exc_info=True)
        return logs

    async def _deliver(
        self,
        webhook: OutboundWebhookDB,
        event_type: str,
        call_id: str,
        payload: Dict[str, Any],
    ) -> OutboundWebhookLogDB:
        log = OutboundWebhookLogDB(
            id=f"obwhlog_{uuid.uuid4().hex}",
            outbound_webhook_id=webhook.id,
            event_type=event_type,
            call_id=call_id,
            status="failed",
        )

        logger.info(f"Dispatching {event_type} to {webhook.destination_url}")
        try:
            response = await self.http_client.post(
                webhook.destination_url,
                json=payload,
                headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
                timeout=self.timeout,
            )
            log.status = "success" if response.is_success else "failed"
            log.http_status = response.status_code
            log.response_body = response.text[:MAX_LOGGED_BODY]
        except httpx.HTTPError as e:
            logger.warning(f"Outbound webhook {webhook.id} transport error: {e}")
            log.http_status = 0
            log.error_message = str(e) or e.__class__.__name__

        await self.repository.create_outbound_webhook_log(log)
        return log
