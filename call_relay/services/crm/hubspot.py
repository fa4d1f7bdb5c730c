"""
HubSpot connector
Contact search with last-10-digit post-filtering and NOTE engagements
"""

import time
from typing import Any, Dict, List, Optional

from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB, OAuthTokenDB
from call_relay.services.appointments import format_call_details
from call_relay.services.crm.base import CRMConnector, RecordRef
from call_relay.services.crm.phone import any_phone_matches, last10, search_seed

logger = get_logger(__name__)

API_BASE = "https://api.hubapi.com"
CONTACT_PROPERTIES = ["phone", "mobilephone", "firstname", "lastname", "email"]


class HubSpotConnector(CRMConnector):
    provider = "hubspot"
    display_name = "HubSpot"

    async def _search(self, token: OAuthTokenDB, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = await self._request(
            "POST", f"{API_BASE}/crm/v3/objects/contacts/search", token, json=payload
        )
        return response.json().get("results") or []

    @staticmethod
    def _first_match(phone: str, contacts: List[Dict[str, Any]]) -> Optional[RecordRef]:
        for contact in contacts:
            props = contact.get("properties") or {}
            if any_phone_matches(phone, (props.get("phone"), props.get("mobilephone"))):
                return RecordRef(
                    id=str(contact["id"]),
                    object_type="contact",
                    phone=props.get("phone") or props.get("mobilephone"),
                )
        return None

    async def search_by_phone(self, token: OAuthTokenDB, phone: str) -> Optional[RecordRef]:
        national = last10(phone)
        if not national:
            return None

        # Free-text search seeded with area code + exchange, then exact suffix match
        contacts = await self._search(token, {
            "query": search_seed(phone),
            "filterGroups": [],
            "properties": CONTACT_PROPERTIES,
            "limit": 100,
        })
        match = self._first_match(phone, contacts)
        if match:
            logger.info(f"HubSpot match {match.id} via query search")
            return match

        contacts = await self._search(token, {
            "filterGroups": [
                {"filters": [{"propertyName": "phone", "operator": "CONTAINS_TOKEN", "value": national}]},
                {"filters": [{"propertyName": "mobilephone", "operator": "CONTAINS_TOKEN", "value": national}]},
            ],
            "properties": CONTACT_PROPERTIES,
            "limit": 10,
        })
        match = self._first_match(phone, contacts)
        if match:
            logger.info(f"HubSpot match {match.id} via CONTAINS_TOKEN")
            return match

        logger.info(f"No HubSpot contact found for {phone}")
        return None

    @staticmethod
    def build_note_body(call: CallRecordDB) -> str:
        body = f"**Call Summary:**\n\n{call.summary}"
        details = format_call_details(call.structured_data or {})
        if details:
            body += f"\n\n**Call Details:**\n{details}"
        if call.recording_url:
            body += f"\n\n**Recording:** [Listen to Recording]({call.recording_url})"
        return body

    async def create_activity(self, token: OAuthTokenDB, record: RecordRef, call: CallRecordDB) -> str:
        payload = {
            "engagement": {
                "active": True,
                "type": "NOTE",
                "timestamp": int(time.time() * 1000),
            },
            "associations": {"contactIds": [int(record.id)]},
            "metadata": {"body": self.build_note_body(call)},
        }
        response = await self._request("POST", f"{API_BASE}/engagements/v1/engagements", token, json=payload)
        engagement_id = str(response.json()["engagement"]["id"])
        logger.info(f"HubSpot engagement created: {engagement_id}")
        return engagement_id
