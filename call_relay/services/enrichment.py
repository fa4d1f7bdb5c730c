"""
Enrichment Pipeline
Post-call analysis, keyword counters, scheduling triggers and addons.
Each step is isolated: a failure is logged and the next step still runs.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from call_relay.core.config import Settings
from call_relay.core.logging import get_logger
from call_relay.db.models import CallRecordDB, now_ts
from call_relay.db.repository import CallRelayRepository
from call_relay.models.analysis import CallAnalysis, Intent
from call_relay.services.addons import AddonService
from call_relay.services.appointments import appointment_epoch
from call_relay.services.cache import CacheStore
from call_relay.services.keywords import KeywordService, extract_keywords
from call_relay.services.llm.openai_service import OpenAIService
from call_relay.services.scheduling_triggers import SchedulingTriggerDispatcher

logger = get_logger(__name__)

# Resolved column -> structured-data keys the voice platform may use
PLATFORM_FIELDS = {
    "appointment_date": ("appointmentDate", "appointment_date"),
    "appointment_time": ("appointmentTime", "appointment_time"),
    "appointment_type": ("appointmentType", "appointment_type"),
    "appointment_notes": ("appointmentNotes", "appointment_notes"),
    "customer_name": ("customerName", "customer_name"),
    "customer_email": ("customerEmail", "customer_email"),
    "intent": ("intent",),
    "sentiment": ("sentiment",),
    "outcome": ("outcome",),
}


def platform_fields(structured_data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Fields the voice platform already extracted, keyed by column name."""
    found = {}
    for column, keys in PLATFORM_FIELDS.items():
        for key in keys:
            value = structured_data.get(key)
            if value not in (None, ""):
                found[column] = str(value)
                break
    return found


def merge_analysis(
    platform: Dict[str, Optional[str]], analysis: Optional[CallAnalysis]
) -> Dict[str, Any]:
    """Column updates with platform values taking precedence over the LLM."""
    llm = analysis.model_dump() if analysis else {}
    merged = {column: platform.get(column) or llm.get(column) for column in PLATFORM_FIELDS}
    if analysis is None:
        merged = {k: v for k, v in merged.items() if v is not None}

    merged["appointment_datetime"] = appointment_epoch(
        merged.get("appointment_date"), merged.get("appointment_time")
    )
    merged["analysis_completed"] = True
    merged["analyzed_at"] = now_ts()
    return merged


class EnrichmentPipeline:
    """Runs every enrichment step for one persisted call."""

    def __init__(
        self,
        repository: CallRelayRepository,
        cache: CacheStore,
        keywords: KeywordService,
        scheduling: SchedulingTriggerDispatcher,
        addons: AddonService,
        config: Settings,
        llm_factory: Optional[Callable[[str], OpenAIService]] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.keywords = keywords
        self.scheduling = scheduling
        self.addons = addons
        self.llm_factory = llm_factory or (
            lambda api_key: OpenAIService(
                api_key,
                model=config.openai_model,
                temperature=config.openai_temperature,
                timeout=config.openai_http_timeout,
            )
        )

    async def run(self, tenant_id: str, call_id: str, transcript: str = "", summary: str = "") -> None:
        call = await self.repository.get_call(tenant_id, call_id)
        if call is None:
            logger.warning(f"Enrichment skipped, call {call_id} not found")
            return

        analyzed = await self._isolated("analysis", call, self.analyze(tenant_id, call, transcript, summary))
        if analyzed is not None:
            call = analyzed

        await self._isolated("keywords", call, self.keywords.record(
            tenant_id, extract_keywords(transcript), call.sentiment
        ))

        if self.is_booked(call):
            await self._isolated("scheduling", call, self.scheduling.trigger(tenant_id, call))

        await self._isolated("addons", call, self.addons.run_for_call(tenant_id, call))

    async def _isolated(self, step: str, call: CallRecordDB, work: Awaitable[Any]) -> Any:
        try:
            return await work
        except Exception as e:
            logger.error(f"Enrichment step '{step}' failed for call {call.id}: {e}", exc_info=True)
            return None

    @staticmethod
    def is_booked(call: CallRecordDB) -> bool:
        return (
            call.intent == Intent.SCHEDULING.value
            and bool(call.appointment_date)
            and bool(call.appointment_time)
        )

    async def analyze(
        self, tenant_id: str, call: CallRecordDB, transcript: str, summary: str
    ) -> Optional[CallRecordDB]:
        """Classify the call (when the tenant has an LLM key) and merge platform fields."""
        platform = platform_fields(call.structured_data or {})
        tenant_settings = await self.repository.get_tenant_settings(tenant_id)

        analysis = None
        if tenant_settings and tenant_settings.openai_api_key:
            service = self.llm_factory(tenant_settings.openai_api_key)
            analysis = await service.analyze_call(summary or call.summary, transcript)
        elif not (platform.get("appointment_date") and platform.get("appointment_time")):
            logger.debug(f"No LLM key and no platform appointment for call {call.id}")
            return None

        updates = merge_analysis(platform, analysis)
        await self.repository.update_call(call.id, updates)
        await self.cache.invalidate_call(tenant_id, call.id)
        logger.info(
            f"Call {call.id} analyzed: intent={updates.get('intent')} "
            f"sentiment={updates.get('sentiment')}"
        )
        return call.model_copy(update=updates)
