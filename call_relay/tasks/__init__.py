"""Background jobs and periodic maintenance"""

from call_relay.tasks.jobs import CrmSyncJob, EnrichmentJob, WebhookDispatchJob
from call_relay.tasks.supervisor import TaskSupervisor

__all__ = ["TaskSupervisor", "CrmSyncJob", "WebhookDispatchJob", "EnrichmentJob"]
