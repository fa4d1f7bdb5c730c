"""
Webhook Ingress
Validates voice platform events, tracks live calls and persists finished ones.

Only persistence and cache invalidation happen before the response; CRM sync,
outbound webhooks and enrichment are submitted to the TaskSupervisor.
"""

import json
import uuid
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from call_relay.core.exceptions import (
    InboundWebhookNotFoundError,
    IngestionError,
    StorageError,
)
from call_relay.core.logging import get_logger
from call_relay.db.models import ActiveCallDB, CallRecordDB, InboundWebhookDB
from call_relay.db.repository import CallRelayRepository
from call_relay.models.events import (
    ACTIVE_STATUSES,
    CallStatus,
    EventMessage,
    InboundEvent,
    MessageType,
)
from call_relay.models.webhook import OutboundEvent
from call_relay.services.cache import CacheStore
from call_relay.services.caller_lookup import CallerInfo, CallerLookupService
from call_relay.services.outbound_webhooks import build_payload
from call_relay.tasks.jobs import CrmSyncJob, EnrichmentJob, WebhookDispatchJob
from call_relay.tasks.supervisor import TaskSupervisor

logger = get_logger(__name__)


class IngressService:
    """Call state machine behind `POST /webhook/{webhook_id}`."""

    def __init__(
        self,
        repository: CallRelayRepository,
        cache: CacheStore,
        caller_lookup: CallerLookupService,
        supervisor: TaskSupervisor,
        providers: Iterable[str],
    ):
        self.repository = repository
        self.cache = cache
        self.caller_lookup = caller_lookup
        self.supervisor = supervisor
        self.providers = list(providers)

    async def resolve_webhook(self, webhook_id: str) -> InboundWebhookDB:
        webhook = await self.repository.get_inbound_webhook(webhook_id)
        if webhook is None or not webhook.is_active:
            raise InboundWebhookNotFoundError(webhook_id)
        return webhook

    async def handle(self, webhook: InboundWebhookDB, body: bytes) -> Dict[str, Any]:
        try:
            raw = json.loads(body)
            event = InboundEvent.model_validate(raw)
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Rejected payload on webhook {webhook.id}: {e}")
            await self._log(webhook, "error", 400, len(body), "Invalid JSON payload")
            raise IngestionError(details={"reason": str(e)[:200]})

        message = event.message
        if message.type == MessageType.STATUS_UPDATE.value:
            return await self.handle_status_update(webhook, message)
        if message.type == MessageType.END_OF_CALL_REPORT.value:
            return await self.handle_end_of_call(webhook, message, raw, len(body))

        logger.debug(f"Ignoring event type '{message.type}' on webhook {webhook.id}")
        return {"received": True, "ignored": True}

    # ==================== Status updates ====================

    async def handle_status_update(self, webhook: InboundWebhookDB, message: EventMessage) -> Dict[str, Any]:
        tenant_id = webhook.tenant_id
        provider_call_id = message.provider_call_id
        status = message.status

        if not provider_call_id:
            logger.debug("Status update without call id, ignoring")
            return {"success": True, "message": "Status acknowledged"}

        if status in ACTIVE_STATUSES:
            caller = await self._lookup_caller(tenant_id, message.customer_number)
            await self.repository.upsert_active_call(ActiveCallDB(
                tenant_id=tenant_id,
                provider_call_id=provider_call_id,
                customer_number=message.customer_number,
                caller_name=caller.caller_name if caller else None,
                carrier_name=caller.carrier_name if caller else None,
                line_type=caller.line_type if caller else None,
                status=status,
            ))
            await self.cache.invalidate_tenant(tenant_id)

            if status == CallStatus.RINGING.value:
                payload = build_payload(
                    OutboundEvent.CALL_STARTED.value,
                    provider_call_id,
                    customer_phone=message.customer_number,
                    assistant_name=message.assistant_name,
                )
                self.supervisor.submit(WebhookDispatchJob(
                    tenant_id, OutboundEvent.CALL_STARTED.value, provider_call_id, payload
                ))
            logger.info(f"Call {provider_call_id} is {status}")
            return {"success": True, "message": "Call status updated"}

        if status == CallStatus.ENDED.value:
            await self.repository.delete_active_call(tenant_id, provider_call_id)
            await self.cache.invalidate_tenant(tenant_id)
            logger.info(f"Call {provider_call_id} ended")
            return {"success": True, "message": "Call status updated"}

        return {"success": True, "message": "Status acknowledged"}

    # ==================== End-of-call reports ====================

    async def handle_end_of_call(
        self,
        webhook: InboundWebhookDB,
        message: EventMessage,
        raw: Dict[str, Any],
        payload_size: int,
    ) -> Dict[str, Any]:
        tenant_id = webhook.tenant_id
        customer_number = message.customer_number
        if not customer_number:
            logger.info(f"End-of-call report without caller number on webhook {webhook.id}, ignoring")
            return {"received": True, "ignored": True}

        provider_call_id = message.provider_call_id
        if provider_call_id:
            existing = await self.repository.get_call_by_provider_id(tenant_id, provider_call_id)
            if existing:
                logger.info(f"Replayed report for {provider_call_id}, keeping call {existing.id}")
                return {"received": True, "call_id": existing.id}

        caller = await self._lookup_caller(tenant_id, customer_number)
        call = CallRecordDB(
            id=f"call_{uuid.uuid4().hex}",
            tenant_id=tenant_id,
            webhook_id=webhook.id,
            provider_call_id=provider_call_id,
            phone_number=message.agent_number,
            customer_number=customer_number,
            recording_url=message.resolved_recording_url(),
            ended_reason=message.resolved_ended_reason(),
            summary=message.resolved_summary(),
            structured_data=message.structured_fields(),
            raw_payload=raw,
            duration_seconds=message.resolved_duration(),
            caller_name=caller.caller_name if caller else None,
            caller_type=caller.caller_type if caller else None,
            carrier_name=caller.carrier_name if caller else None,
            line_type=caller.line_type if caller else None,
        )

        try:
            await self.repository.create_call(call)
        except Exception as e:
            # A concurrent replay may have won the unique (tenant, provider call id) insert
            if provider_call_id:
                existing = await self.repository.get_call_by_provider_id(tenant_id, provider_call_id)
                if existing:
                    return {"received": True, "call_id": existing.id}
            logger.error(f"Failed to store call for webhook {webhook.id}: {e}", exc_info=True)
            await self._log(webhook, "error", 500, payload_size, str(e)[:500])
            raise StorageError(details={"webhook_id": webhook.id})

        await self._log(webhook, "success", 200, payload_size)
        await self.cache.invalidate_tenant(tenant_id)
        self._schedule_followups(call, message)
        return {"received": True, "call_id": call.id}

    def _schedule_followups(self, call: CallRecordDB, message: EventMessage) -> None:
        ended = OutboundEvent.CALL_ENDED.value
        payload = build_payload(
            ended,
            call.id,
            customer_phone=call.customer_number,
            assistant_name=message.assistant_name,
            duration_seconds=call.duration_seconds,
            ended_reason=call.ended_reason,
            summary=call.summary,
            structured_data=call.structured_data,
            conversation=message.conversation(),
            recording_url=call.recording_url,
        )
        self.supervisor.submit(WebhookDispatchJob(call.tenant_id, ended, call.id, payload))

        for provider in self.providers:
            self.supervisor.submit(CrmSyncJob(call.tenant_id, call, provider))

        self.supervisor.submit(EnrichmentJob(
            call.tenant_id,
            call.id,
            transcript=message.artifact.transcript or "",
            summary=call.summary,
        ))

    # ==================== Helpers ====================

    async def _lookup_caller(self, tenant_id: str, phone: Optional[str]) -> Optional[CallerInfo]:
        tenant_settings = await self.repository.get_tenant_settings(tenant_id)
        if not tenant_settings:
            return None
        return await self.caller_lookup.lookup(
            phone, tenant_settings.twilio_account_sid, tenant_settings.twilio_auth_token
        )

    async def _log(
        self,
        webhook: InboundWebhookDB,
        status: str,
        http_status: int,
        payload_size: int,
        error_message: Optional[str] = None,
    ) -> None:
        try:
            await self.repository.log_webhook_event(
                f"whlog_{uuid.uuid4().hex}", webhook.id, status, http_status, payload_size, error_message
            )
        except Exception as e:
            logger.error(f"Failed to write webhook log for {webhook.id}: {e}")
