"""
Typed background jobs submitted by the webhook ingress
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Union

from call_relay.db.models import CallRecordDB

if TYPE_CHECKING:
    from call_relay.context import AppContext


@dataclass
class CrmSyncJob:
    """Push one call into one CRM."""
    tenant_id: str
    call: CallRecordDB
    provider: str

    def describe(self) -> str:
        return f"crm-sync:{self.provider}:{self.call.id}"

    async def run(self, context: "AppContext") -> None:
        connector = context.connectors[self.provider]
        await context.sync_service.sync(connector, self.tenant_id, self.call)


@dataclass
class WebhookDispatchJob:
    """Fan an event out to the tenant's outbound webhooks."""
    tenant_id: str
    event_type: str
    call_id: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        return f"webhook-dispatch:{self.event_type}:{self.call_id}"

    async def run(self, context: "AppContext") -> None:
        await context.dispatcher.dispatch(self.tenant_id, self.event_type, self.call_id, self.payload)


@dataclass
class EnrichmentJob:
    """Analysis, keywords, scheduling triggers and addons for one call."""
    tenant_id: str
    call_id: str
    transcript: str = ""
    summary: str = ""

    def describe(self) -> str:
        return f"enrichment:{self.call_id}"

    async def run(self, context: "AppContext") -> None:
        await context.enrichment.run(self.tenant_id, self.call_id, self.transcript, self.summary)


Job = Union[CrmSyncJob, WebhookDispatchJob, EnrichmentJob]
