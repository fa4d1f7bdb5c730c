"""
Data addons
Third-party phone enrichment with a read-through cache keyed by (tenant, call)
"""

import time
import uuid
from typing import Any, Dict, List, Optional

import httpx

from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB
from call_relay.db.repository import CallRelayRepository
from call_relay.services.cache import CacheStore

logger = get_logger(__name__)

ENHANCED_DATA = "enhanced_data"
SUPPORTED_ADDONS = (ENHANCED_DATA,)


class AddonService:
    """Runs the addons a tenant has enabled and records one result row per addon."""

    def __init__(
        self,
        repository: CallRelayRepository,
        cache: CacheStore,
        http_client: httpx.AsyncClient,
        enhanced_data_url: str,
        timeout: float = 15.0,
    ):
        self.repository = repository
        self.cache = cache
        self.http_client = http_client
        self.enhanced_data_url = enhanced_data_url
        self.timeout = timeout

    async def _fetch_enhanced_data(self, phone: str) -> Optional[Dict[str, Any]]:
        response = await self.http_client.get(
            self.enhanced_data_url,
            params={"phone": phone},
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        if not response.is_success:
            logger.warning(f"Enhanced data lookup returned {response.status_code}")
            return None
        return response.json()

    async def enhanced_data(self, tenant_id: str, call: CallRecordDB) -> Optional[Dict[str, Any]]:
        """Cached enhanced data for a call, fetching on miss."""
        key = self.cache.enhanced_key(tenant_id, call.id)
        return await self.cache.get_or_set(
            key,
            self.cache.ttl_enhanced_data,
            lambda: self._fetch_enhanced_data(call.customer_number),
        )

    async def run_for_call(self, tenant_id: str, call: CallRecordDB) -> List[Dict[str, Any]]:
        if not call.customer_number:
            return []

        results = []
        for addon_type in await self.repository.list_enabled_addons(tenant_id):
            if addon_type not in SUPPORTED_ADDONS:
                logger.warning(f"Skipping unknown addon {addon_type} for tenant {tenant_id}")
                continue

            started = time.monotonic()
            result = {
                "id": f"addon_{uuid.uuid4().hex}",
                "call_id": call.id,
                "tenant_id": tenant_id,
                "addon_type": addon_type,
                "status": "failed",
                "result_data": None,
                "error_message": None,
            }
            try:
                data = await self.enhanced_data(tenant_id, call)
                if data is None:
                    result["error_message"] = "Failed to fetch enhanced data"
                else:
                    result["status"] = "success"
                    result["result_data"] = data
            except Exception as e:
                logger.error(f"Addon {addon_type} failed for call {call.id}: {e}")
                result["error_message"] = str(e)

            result["execution_time_ms"] = int((time.monotonic() - started) * 1000)
            await self.repository.create_addon_result(result)
            results.append(result)
        return results
