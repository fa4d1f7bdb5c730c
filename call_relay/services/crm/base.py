"""
CRM connector contract

Each provider implements the same capability set so the sync service can
treat connectors uniformly without branching on provider names.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from call_relay.core.exceptions import CRMServiceError
from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB, OAuthTokenDB
from call_relay.services.crm.token_vault import TokenVault

logger = get_logger(__name__)


@dataclass
class RecordRef:
    """A matched (or newly created) CRM person record"""
    id: str
    object_type: str
    phone: Optional[str] = None
    created: bool = False


@dataclass
class AppointmentRequest:
    date: str
    time: str
    type: Optional[str] = None
    notes: Optional[str] = None
    duration_minutes: int = 60


def appointment_from_call(call: CallRecordDB) -> Optional[AppointmentRequest]:
    """Appointment details from resolved columns or platform structured data."""
    data = call.structured_data or {}
    date = call.appointment_date or data.get("appointmentDate") or data.get("appointment_date")
    time = call.appointment_time or data.get("appointmentTime") or data.get("appointment_time")
    if not date or not time:
        return None
    return AppointmentRequest(
        date=str(date),
        time=str(time),
        type=call.appointment_type or data.get("appointmentType") or data.get("appointment_type"),
        notes=call.appointment_notes or data.get("appointmentNotes") or data.get("appointment_notes"),
    )


def format_duration(seconds: Optional[int]) -> str:
    seconds = seconds or 0
    return f"{seconds // 60} min {seconds % 60} sec"


class CRMConnector(ABC):
    """Base class for CRM connectors"""

    provider: str = ""
    display_name: str = ""

    def __init__(self, vault: TokenVault, http_client: httpx.AsyncClient, timeout: float = 30.0):
        self.vault = vault
        self.http_client = http_client
        self.timeout = timeout

    async def ensure_valid_token(self, tenant_id: str) -> OAuthTokenDB:
        return await self.vault.ensure_valid_token(tenant_id, self.provider)

    @abstractmethod
    async def search_by_phone(self, token: OAuthTokenDB, phone: str) -> Optional[RecordRef]:
        """Find the person record whose phone fields match `phone`."""
        pass

    @abstractmethod
    async def create_activity(self, token: OAuthTokenDB, record: RecordRef, call: CallRecordDB) -> str:
        """Log the call against `record` and return the activity id."""
        pass

    async def create_appointment(
        self, token: OAuthTokenDB, record: RecordRef, call: CallRecordDB
    ) -> Optional[str]:
        """Create a calendar entry for a booked appointment, if supported."""
        return None

    async def create_prospect(self, token: OAuthTokenDB, call: CallRecordDB) -> Optional[RecordRef]:
        """Create a minimal record when no match exists, if supported."""
        return None

    def _headers(self, token: OAuthTokenDB) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token.access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        url: str,
        token: OAuthTokenDB,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send an authenticated request; non-2xx responses raise CRMServiceError."""
        try:
            response = await self.http_client.request(
                method,
                url,
                headers={**self._headers(token), **(headers or {})},
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise CRMServiceError(self.provider, f"{self.display_name} request failed: {e}")

        if response.is_error:
            logger.error(f"{self.display_name} {method} {url} -> {response.status_code}: {response.text[:500]}")
            raise CRMServiceError(
                self.provider,
                f"{self.display_name} API error {response.status_code}: {response.text[:500]}",
                response.status_code,
            )
        return response
