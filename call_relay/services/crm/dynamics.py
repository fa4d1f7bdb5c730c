"""
Microsoft Dynamics 365 connector
OData phone search over leads then contacts, lead creation on no match,
phonecall and appointment activities
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB, OAuthTokenDB
from call_relay.services.appointments import appointment_window
from call_relay.services.crm.base import (
    CRMConnector,
    RecordRef,
    appointment_from_call,
    format_duration,
)
from call_relay.services.crm.phone import any_phone_matches, candidate_formats

logger = get_logger(__name__)

API_PATH = "/api/data/v9.2"
PHONE_FIELDS = ("telephone1", "mobilephone", "telephone2")
ENTITY_ID_RE = re.compile(r"\(([^)]+)\)")

# (entity set, id column, record type), leads first
SEARCH_ORDER = (("leads", "leadid", "lead"), ("contacts", "contactid", "contact"))


def entity_id_from_response(header: Optional[str]) -> str:
    match = ENTITY_ID_RE.search(header or "")
    return match.group(1) if match else ""


class DynamicsConnector(CRMConnector):
    provider = "dynamics"
    display_name = "Dynamics"

    def _headers(self, token: OAuthTokenDB) -> Dict[str, str]:
        return {
            **super()._headers(token),
            "Accept": "application/json",
            "OData-MaxVersion": "4.0",
            "OData-Version": "4.0",
        }

    def _base(self, token: OAuthTokenDB) -> str:
        return f"{(token.instance_url or '').rstrip('/')}{API_PATH}"

    async def search_by_phone(self, token: OAuthTokenDB, phone: str) -> Optional[RecordRef]:
        base = self._base(token)
        for entity_set, id_field, object_type in SEARCH_ORDER:
            for term in candidate_formats(phone):
                escaped = term.replace("'", "''")
                condition = " or ".join(f"contains({f},'{escaped}')" for f in PHONE_FIELDS)
                response = await self._request(
                    "GET",
                    f"{base}/{entity_set}",
                    token,
                    params={
                        "$filter": condition,
                        "$select": ",".join((id_field, "fullname") + PHONE_FIELDS),
                    },
                )
                for row in response.json().get("value") or []:
                    if any_phone_matches(phone, (row.get(f) for f in PHONE_FIELDS)):
                        logger.info(f"Dynamics match {object_type} {row[id_field]} via '{term}'")
                        return RecordRef(id=row[id_field], object_type=object_type, phone=row.get("telephone1"))

        logger.info(f"No Dynamics lead or contact found for {phone}")
        return None

    async def create_prospect(self, token: OAuthTokenDB, call: CallRecordDB) -> Optional[RecordRef]:
        payload = {
            "telephone1": call.customer_number,
            "subject": f"Voice AI Call - {call.customer_number}",
            "leadsourcecode": 3,
            "description": f"Lead created from voice AI call on {datetime.now(timezone.utc).isoformat()}",
        }
        full_name = (call.customer_name or call.caller_name or "").strip()
        if full_name:
            parts = full_name.split()
            if len(parts) > 1:
                payload["firstname"] = " ".join(parts[:-1])
            payload["lastname"] = parts[-1]
        else:
            payload["lastname"] = call.customer_number

        response = await self._request(
            "POST",
            f"{self._base(token)}/leads",
            token,
            headers={"Prefer": "return=representation"},
            json=payload,
        )
        created = response.json() if response.content else {}
        lead_id = created.get("leadid") or entity_id_from_response(response.headers.get("OData-EntityId"))
        logger.info(f"Dynamics lead created: {lead_id}")
        return RecordRef(id=lead_id, object_type="lead", phone=call.customer_number, created=True)

    def _regarding(self, record: RecordRef, activity: str) -> Dict[str, str]:
        entity_set = "leads" if record.object_type == "lead" else "contacts"
        return {f"regardingobjectid_{record.object_type}_{activity}@odata.bind": f"/{entity_set}({record.id})"}

    async def create_activity(self, token: OAuthTokenDB, record: RecordRef, call: CallRecordDB) -> str:
        duration = call.duration_seconds or 0
        started = datetime.fromtimestamp(call.created_at, tz=timezone.utc) - timedelta(seconds=duration)
        payload = {
            "subject": "Inbound Call",
            **self._regarding(record, "phonecall"),
            "phonenumber": call.customer_number,
            "actualdurationminutes": duration // 60,
            "actualstart": started.isoformat(),
            "actualend": (started + timedelta(seconds=duration)).isoformat(),
            "description": (
                f"Call Duration: {format_duration(duration)}\n"
                f"Phone: {call.customer_number}\n\n{call.summary}"
            ),
            "directioncode": False,
            "statecode": 1,
            "statuscode": 4,
        }
        response = await self._request("POST", f"{self._base(token)}/phonecalls", token, json=payload)
        activity_id = entity_id_from_response(response.headers.get("OData-EntityId"))
        logger.info(f"Dynamics phonecall created: {activity_id}")
        return activity_id

    async def create_appointment(
        self, token: OAuthTokenDB, record: RecordRef, call: CallRecordDB
    ) -> Optional[str]:
        appointment = appointment_from_call(call)
        if appointment is None:
            return None
        window = appointment_window(appointment.date, appointment.time, appointment.duration_minutes)
        if window is None:
            return None

        notes = f"Notes: {appointment.notes}\n\n" if appointment.notes else ""
        payload = {
            "subject": f"{appointment.type or 'Appointment'} - Scheduled via Voice AI",
            **self._regarding(record, "appointment"),
            "scheduledstart": window["start"].isoformat(),
            "scheduledend": window["end"].isoformat(),
            "description": f"Appointment scheduled during call.\n\n{notes}Call Summary:\n{call.summary}",
            "statecode": 0,
            "statuscode": 1,
        }
        response = await self._request("POST", f"{self._base(token)}/appointments", token, json=payload)
        appointment_id = entity_id_from_response(response.headers.get("OData-EntityId"))
        logger.info(f"Dynamics appointment created: {appointment_id}")
        return appointment_id
