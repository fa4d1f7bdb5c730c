"""
Salesforce connector
SOSL phone search over Leads and Contacts, Task call logs and Event appointments
"""

from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from call_relay.core.exceptions import CRMServiceError
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

API_VERSION = "v59.0"
SOSL_RESERVED = set('?&|!{}[]()^~*:\\"\'+-')
# Leads are checked before Contacts
OBJECT_PRIORITY = {"Lead": 0, "Contact": 1}


def escape_sosl(term: str) -> str:
    return "".join(f"\\{c}" if c in SOSL_RESERVED else c for c in term)


class SalesforceConnector(CRMConnector):
    provider = "salesforce"
    display_name = "Salesforce"

    def _base(self, token: OAuthTokenDB) -> str:
        if not token.instance_url:
            raise CRMServiceError(self.provider, "Salesforce instance URL missing")
        return f"{token.instance_url.rstrip('/')}/services/data/{API_VERSION}"

    async def search_by_phone(self, token: OAuthTokenDB, phone: str) -> Optional[RecordRef]:
        base = self._base(token)
        for term in candidate_formats(phone):
            sosl = (
                f"FIND {{{escape_sosl(term)}}} IN PHONE FIELDS "
                "RETURNING Lead(Id, Phone, MobilePhone), Contact(Id, Phone, MobilePhone)"
            )
            response = await self._request("GET", f"{base}/search?q={quote(sosl)}", token)
            records = response.json().get("searchRecords") or []
            records.sort(key=lambda r: OBJECT_PRIORITY.get(r.get("attributes", {}).get("type"), 2))

            for record in records:
                phones = (record.get("Phone"), record.get("MobilePhone"))
                if any_phone_matches(phone, phones):
                    object_type = record.get("attributes", {}).get("type", "Contact")
                    logger.info(f"Salesforce match {object_type} {record['Id']} via '{term}'")
                    return RecordRef(
                        id=record["Id"],
                        object_type=object_type,
                        phone=record.get("Phone") or record.get("MobilePhone"),
                    )

        logger.info(f"No Salesforce Lead or Contact found for {phone}")
        return None

    async def create_activity(self, token: OAuthTokenDB, record: RecordRef, call: CallRecordDB) -> str:
        started = datetime.fromtimestamp(call.created_at, tz=timezone.utc)
        payload = {
            "WhoId": record.id,
            "Subject": "Inbound Call",
            "Type": "Call",
            "CallType": "Inbound",
            "Status": "Completed",
            "ActivityDate": started.date().isoformat(),
            "Description": (
                f"Call Duration: {format_duration(call.duration_seconds)}\n"
                f"Phone: {call.customer_number}\n\n{call.summary}"
            ),
            "TaskSubtype": "Call",
            "Priority": "Normal",
        }
        response = await self._request("POST", f"{self._base(token)}/sobjects/Task", token, json=payload)
        task_id = response.json()["id"]
        logger.info(f"Salesforce Task created: {task_id}")
        return task_id

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
            "WhoId": record.id,
            "Subject": f"{appointment.type or 'Appointment'} - Scheduled via Voice AI",
            "StartDateTime": window["start"].isoformat(),
            "EndDateTime": window["end"].isoformat(),
            "Description": f"Appointment scheduled during call.\n\n{notes}Call Summary:\n{call.summary}",
            "IsReminderSet": True,
            "ReminderDateTime": window["reminder"].isoformat(),
            "Type": "Meeting",
            "ShowAs": "Busy",
        }
        response = await self._request("POST", f"{self._base(token)}/sobjects/Event", token, json=payload)
        event_id = response.json()["id"]
        logger.info(f"Salesforce Event created: {event_id}")
        return event_id
