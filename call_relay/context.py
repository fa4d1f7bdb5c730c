"""
Application context

Every long-lived collaborator is built once here and handed to the services
that need it. FastAPI keeps the context on `app.state.context`; background
jobs receive it from the TaskSupervisor.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import httpx
import redis.asyncio as redis

from call_relay.core.config import Settings
from call_relay.core.logging import get_logger
from call_relay.db import CallRelayRepository, create_adapter
from call_relay.services.addons import AddonService
from call_relay.services.cache import CacheStore, create_redis_client
from call_relay.services.caller_lookup import CallerLookupService
from call_relay.services.crm import CRMConnector, CrmSyncService, TokenVault, build_connectors
from call_relay.services.enrichment import EnrichmentPipeline
from call_relay.services.ingress import IngressService
from call_relay.services.keywords import KeywordService
from call_relay.services.outbound_webhooks import OutboundWebhookDispatcher
from call_relay.services.scheduling_triggers import SchedulingTriggerDispatcher
from call_relay.tasks.supervisor import TaskSupervisor

logger = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    repository: CallRelayRepository
    cache: CacheStore
    http_client: httpx.AsyncClient
    vault: TokenVault
    connectors: Dict[str, CRMConnector]
    sync_service: CrmSyncService
    dispatcher: OutboundWebhookDispatcher
    scheduling: SchedulingTriggerDispatcher
    addons: AddonService
    keywords: KeywordService
    caller_lookup: CallerLookupService
    enrichment: EnrichmentPipeline
    ingress: IngressService
    supervisor: TaskSupervisor


def build_context(
    config: Settings,
    repository: Optional[CallRelayRepository] = None,
    redis_client: Optional[redis.Redis] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    caller_lookup: Optional[CallerLookupService] = None,
    enrichment: Optional[EnrichmentPipeline] = None,
) -> AppContext:
    """
    Wire all services. Tests pass their own repository, Redis double,
    HTTP client or enrichment pipeline; everything else is derived.
    """
    repository = repository or CallRelayRepository(create_adapter(config))
    cache = CacheStore(redis_client or create_redis_client(config.redis_url), config)
    http_client = http_client or httpx.AsyncClient(timeout=config.crm_http_timeout)
    caller_lookup = caller_lookup or CallerLookupService(config.caller_lookup_timeout)

    vault = TokenVault(repository, http_client, config)
    connectors = build_connectors(vault, http_client, config.crm_http_timeout)
    addons = AddonService(
        repository, cache, http_client, config.enhanced_data_url, config.addon_http_timeout
    )
    scheduling = SchedulingTriggerDispatcher(
        repository, http_client, addons, config.webhook_http_timeout
    )
    keywords = KeywordService(repository)
    enrichment = enrichment or EnrichmentPipeline(
        repository, cache, keywords, scheduling, addons, config
    )
    supervisor = TaskSupervisor()
    ingress = IngressService(repository, cache, caller_lookup, supervisor, connectors.keys())

    context = AppContext(
        settings=config,
        repository=repository,
        cache=cache,
        http_client=http_client,
        vault=vault,
        connectors=connectors,
        sync_service=CrmSyncService(repository),
        dispatcher=OutboundWebhookDispatcher(repository, http_client, config.webhook_http_timeout),
        scheduling=scheduling,
        addons=addons,
        keywords=keywords,
        caller_lookup=caller_lookup,
        enrichment=enrichment,
        ingress=ingress,
        supervisor=supervisor,
    )
    supervisor.bind(context)
    return context


async def close_context(context: AppContext, drain_timeout: float = 30.0) -> None:
    """Wait for background jobs, then release clients and the database."""
    await context.supervisor.drain(timeout=drain_timeout)
    await context.http_client.aclose()
    await context.cache.client.aclose()
    await context.repository.close()
    logger.info("Application context closed")
