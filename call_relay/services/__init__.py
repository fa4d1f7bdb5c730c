"""Services module"""

from call_relay.services.cache import CacheStore, create_redis_client
from call_relay.services.enrichment import EnrichmentPipeline
from call_relay.services.ingress import IngressService
from call_relay.services.outbound_webhooks import OutboundWebhookDispatcher
from call_relay.services.scheduling_triggers import SchedulingTriggerDispatcher

__all__ = [
    "CacheStore",
    "create_redis_client",
    "EnrichmentPipeline",
    "IngressService",
    "OutboundWebhookDispatcher",
    "SchedulingTriggerDispatcher",
]
