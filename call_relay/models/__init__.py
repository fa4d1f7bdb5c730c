"""Data models for Call Relay"""

from .events import (
    MessageType,
    CallStatus,
    ACTIVE_STATUSES,
    EventMessage,
    InboundEvent,
)
from .analysis import CallAnalysis, Intent, Sentiment, SENTIMENT_SCORES
from .integration import (
    CRMProvider,
    SyncStatus,
    InitiateResponse,
    IntegrationStatus,
    SyncLogEntry,
    SyncLogPage,
)
from .webhook import (
    OutboundEvent,
    VALID_EVENTS,
    OutboundWebhookCreate,
    OutboundWebhookUpdate,
    OutboundWebhookResponse,
    SchedulingTriggerCreate,
    InboundWebhookCreate,
    TenantSettingsUpdate,
    AddonToggle,
)

__all__ = [
    # Events
    "MessageType",
    "CallStatus",
    "ACTIVE_STATUSES",
    "EventMessage",
    "InboundEvent",
    # Analysis
    "CallAnalysis",
    "Intent",
    "Sentiment",
    "SENTIMENT_SCORES",
    # Integrations
    "CRMProvider",
    "SyncStatus",
    "InitiateResponse",
    "IntegrationStatus",
    "SyncLogEntry",
    "SyncLogPage",
    # Webhooks
    "OutboundEvent",
    "VALID_EVENTS",
    "OutboundWebhookCreate",
    "OutboundWebhookUpdate",
    "OutboundWebhookResponse",
    "SchedulingTriggerCreate",
    "InboundWebhookCreate",
    "TenantSettingsUpdate",
    "AddonToggle",
]
