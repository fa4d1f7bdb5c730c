"""
CRM sync service
Runs one connector against one call and records exactly one sync log row
"""

import uuid
from typing import Optional

from call_relay.core.exceptions import IntegrationNotConnectedError
from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB, SyncLogDB
from call_relay.db.repository import CallRelayRepository
from call_relay.models.integration import SyncStatus
from call_relay.services.crm.base import CRMConnector

logger = get_logger(__name__)

LOG_ID_PREFIX = {"salesforce": "sf", "hubspot": "hs", "dynamics": "dyn"}


class CrmSyncService:
    """Syncs calls to CRMs; every attempt ends in one success/skipped/error row."""

    def __init__(self, repository: CallRelayRepository):
        self.repository = repository

    async def sync(self, connector: CRMConnector, tenant_id: str, call: CallRecordDB) -> SyncLogDB:
        log = SyncLogDB(
            id=f"{LOG_ID_PREFIX.get(connector.provider, connector.provider)}_{uuid.uuid4().hex}",
            tenant_id=tenant_id,
            call_id=call.id,
            phone_number=call.customer_number,
            status=SyncStatus.ERROR.value,
        )

        try:
            token = await connector.ensure_valid_token(tenant_id)

            record = await connector.search_by_phone(token, call.customer_number)
            if record is None:
                record = await connector.create_prospect(token, call)

            if record is None:
                log.status = SyncStatus.SKIPPED.value
                log.error_message = f"Phone number not found in {connector.display_name}"
            else:
                log.record_id = record.id
                log.record_created = record.created
                log.activity_id = await connector.create_activity(token, record, call)
                log.appointment_id = await self._create_appointment(connector, token, record, call)
                log.status = SyncStatus.SUCCESS.value

        except IntegrationNotConnectedError as e:
            log.status = SyncStatus.SKIPPED.value
            log.error_message = e.message
        except Exception as e:
            logger.error(f"{connector.display_name} sync failed for call {call.id}: {e}")
            log.status = SyncStatus.ERROR.value
            log.error_message = str(e)

        await self.repository.create_sync_log(connector.provider, log)
        logger.info(f"{connector.display_name} sync for call {call.id}: {log.status}")
        return log

    @staticmethod
    async def _create_appointment(connector, token, record, call) -> Optional[str]:
        # Appointment failures never fail the sync
        try:
            return await connector.create_appointment(token, record, call)
        except Exception as e:
            logger.warning(f"{connector.display_name} appointment for call {call.id} failed: {e}")
            return None
