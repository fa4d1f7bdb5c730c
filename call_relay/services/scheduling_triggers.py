"""
Scheduling Trigger Dispatcher
Notifies tenant-registered endpoints when a call books an appointment
"""

import json
import uuid
from typing import Any, Dict, List, Optional

import httpx

from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB
from call_relay.db.repository import CallRelayRepository
from call_relay.services.addons import AddonService

logger = get_logger(__name__)

MAX_LOGGED_BODY = 1000


def build_trigger_payload(call: CallRecordDB) -> Dict[str, Any]:
    return {
        "name": call.customer_name or "Unknown",
        "email": call.customer_email,
        "phone": call.customer_number or call.phone_number,
        "phone_being_called": call.phone_number,
        "appointment_date": call.appointment_date,
        "appointment_time": call.appointment_time,
        "appointment_type": call.appointment_type,
        "appointment_notes": call.appointment_notes,
        "recording": call.recording_url,
        "call_summary": call.summary or None,
        "call_id": call.id,
        "intent": call.intent,
        "sentiment": call.sentiment,
        "outcome": call.outcome,
    }


class SchedulingTriggerDispatcher:
    """POSTs appointment details to every active trigger, one log row each."""

    def __init__(
        self,
        repository: CallRelayRepository,
        http_client: httpx.AsyncClient,
        addons: Optional[AddonService] = None,
        timeout: float = 10.0,
    ):
        self.repository = repository
        self.http_client = http_client
        self.addons = addons
        self.timeout = timeout

    async def trigger(self, tenant_id: str, call: CallRecordDB) -> List[Dict[str, Any]]:
        triggers = await self.repository.list_scheduling_triggers(tenant_id, active_only=True)
        if not triggers:
            logger.info(f"No active scheduling triggers for tenant {tenant_id}")
            return []

        base_payload = build_trigger_payload(call)
        enhanced = None
        if self.addons and any(t.send_enhanced_data for t in triggers):
            try:
                enhanced = await self.addons.enhanced_data(tenant_id, call)
            except Exception as e:
                logger.warning(f"Enhanced data unavailable for call {call.id}: {e}")

        logs = []
        for trigger in triggers:
            payload = dict(base_payload)
            if trigger.send_enhanced_data and enhanced:
                payload["enhanced_data"] = enhanced

            log = {
                "id": f"stlog_{uuid.uuid4().hex}",
                "trigger_id": trigger.id,
                "call_id": call.id,
                "status": "error",
                "http_status": None,
                "response_body": None,
                "error_message": None,
                "payload_sent": json.dumps(payload, default=str),
            }
            try:
                response = await self.http_client.post(
                    trigger.destination_url,
                    json=payload,
                    headers={
                        "Content-Type": "application/json",
                        "X-Trigger-Type": "appointment-scheduled",
                        "X-Call-ID": call.id,
                    },
                    timeout=self.timeout,
                )
                body = response.text
                log["http_status"] = response.status_code
                log["response_body"] = body[:MAX_LOGGED_BODY]
                if response.is_success:
                    log["status"] = "success"
                else:
                    log["error_message"] = f"HTTP {response.status_code}: {body[:MAX_LOGGED_BODY]}"
                logger.info(f"Scheduling trigger {trigger.id} -> {response.status_code}")
            except httpx.HTTPError as e:
                logger.warning(f"Scheduling trigger {trigger.id} failed: {e}")
                log["error_message"] = str(e) or e.__class__.__name__

            await self.repository.create_scheduling_trigger_log(log)
            logs.append(log)
        return logs
