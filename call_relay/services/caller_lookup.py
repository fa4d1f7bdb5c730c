"""
Caller line lookup via Twilio Lookup v2
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from call_relay.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CallerInfo:
    caller_name: Optional[str] = None
    caller_type: Optional[str] = None
    carrier_name: Optional[str] = None
    line_type: Optional[str] = None


class CallerLookupService:
    """Resolves caller name and line type; failures return None."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    def _lookup_sync(self, phone: str, account_sid: str, auth_token: str) -> CallerInfo:
        client = Client(account_sid, auth_token, http_client=TwilioHttpClient(timeout=self.timeout))
        result = client.lookups.v2.phone_numbers(phone).fetch(
            fields="caller_name,line_type_intelligence"
        )
        caller = result.caller_name or {}
        line = result.line_type_intelligence or {}
        return CallerInfo(
            caller_name=caller.get("caller_name"),
            caller_type=caller.get("caller_type"),
            carrier_name=line.get("carrier_name"),
            line_type=line.get("type"),
        )

    async def lookup(
        self,
        phone: Optional[str],
        account_sid: Optional[str],
        auth_token: Optional[str],
    ) -> Optional[CallerInfo]:
        if not phone or not account_sid or not auth_token:
            return None

        e164 = re.sub(r"[^\d+]", "", phone)
        try:
            # The Twilio SDK is synchronous
            return await asyncio.wait_for(
                asyncio.to_thread(self._lookup_sync, e164, account_sid, auth_token),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Twilio lookup for {e164} timed out after {self.timeout}s")
        except TwilioException as e:
            logger.warning(f"Twilio lookup failed for {e164}: {e}")
        except Exception as e:
            logger.error(f"Unexpected error during caller lookup: {e}")
        return None
