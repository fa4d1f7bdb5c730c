"""
Database Models

These models represent the database schema and are used by all
database adapters (SQLite, Turso, PostgreSQL).

Timestamps are stored as integer epoch seconds and JSON columns as text,
so the same schema and queries run unchanged on every backend.
"""

import time
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


def now_ts() -> int:
    """Current time as epoch seconds"""
    return int(time.time())


class TenantSettingsDB(BaseModel):
    """Per-tenant credentials used by the enrichment pipeline"""
    tenant_id: str
    openai_api_key: Optional[str] = None
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    created_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class InboundWebhookDB(BaseModel):
    """A registered ingestion endpoint (POST /webhook/{id})"""
    id: str
    tenant_id: str
    name: str
    secret: Optional[str] = None
    is_active: bool = True
    created_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class CallRecordDB(BaseModel):
    """Database model for a completed call"""
    id: str
    tenant_id: str
    webhook_id: Optional[str] = None
    provider_call_id: Optional[str] = None
    phone_number: Optional[str] = None  # receiving line
    customer_number: str  # caller
    recording_url: Optional[str] = None
    ended_reason: str = "unknown"
    summary: str = ""
    structured_data: Dict[str, Any] = Field(default_factory=dict)
    raw_payload: Dict[str, Any] = Field(default_factory=dict)
    duration_seconds: Optional[int] = None
    caller_name: Optional[str] = None
    caller_type: Optional[str] = None
    carrier_name: Optional[str] = None
    line_type: Optional[str] = None
    intent: Optional[str] = None
    sentiment: Optional[str] = None
    outcome: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    appointment_datetime: Optional[int] = None
    appointment_type: Optional[str] = None
    appointment_notes: Optional[str] = None
    analysis_completed: bool = False
    analyzed_at: Optional[int] = None
    created_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class ActiveCallDB(BaseModel):
    """A call currently ringing or in progress"""
    tenant_id: str
    provider_call_id: str
    customer_number: Optional[str] = None
    caller_name: Optional[str] = None
    carrier_name: Optional[str] = None
    line_type: Optional[str] = None
    status: str
    started_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class OAuthTokenDB(BaseModel):
    """Stored OAuth credentials for one (tenant, provider) pair"""
    tenant_id: str
    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: int
    instance_url: Optional[str] = None
    created_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class SyncLogDB(BaseModel):
    """One CRM sync attempt"""
    id: str
    tenant_id: str
    call_id: str
    phone_number: Optional[str] = None
    record_id: Optional[str] = None
    activity_id: Optional[str] = None
    appointment_id: Optional[str] = None
    record_created: bool = False
    status: str  # success | skipped | error
    error_message: Optional[str] = None
    created_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class OutboundWebhookDB(BaseModel):
    """A tenant-registered destination for call events"""
    id: str
    tenant_id: str
    name: str
    destination_url: str
    events: str = "call.ended"  # comma-separated
    is_active: bool = True
    created_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True

    @property
    def event_set(self) -> set:
        return {e.strip() for e in self.events.split(",") if e.strip()}


class OutboundWebhookLogDB(BaseModel):
    """One outbound webhook delivery attempt"""
    id: str
    outbound_webhook_id: str
    event_type: str
    call_id: str
    status: str  # success | failed
    http_status: Optional[int] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    created_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class SchedulingTriggerDB(BaseModel):
    """A destination notified when an appointment gets booked"""
    id: str
    tenant_id: str
    name: str
    destination_url: str
    is_active: bool = True
    send_enhanced_data: bool = False
    created_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


class KeywordDB(BaseModel):
    """Running per-tenant keyword counter"""
    id: str
    tenant_id: str
    keyword: str
    count: int = 0
    positive_count: int = 0
    neutral_count: int = 0
    negative_count: int = 0
    avg_sentiment: float = 0.0
    last_detected_at: int = Field(default_factory=now_ts)
    created_at: int = Field(default_factory=now_ts)

    class Config:
        from_attributes = True


SYNC_LOG_TABLES = {
    "salesforce": "salesforce_sync_logs",
    "hubspot": "hubspot_sync_logs",
    "dynamics": "dynamics_sync_logs",
}


def _sync_log_table_sql(table: str) -> str:
    return f"""
CREATE TABLE IF NOT EXISTS {table} (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    call_id TEXT NOT NULL,
    phone_number TEXT,
    record_id TEXT,
    activity_id TEXT,
    appointment_id TEXT,
    record_created INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    error_message TEXT,
    created_at BIGINT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_{table}_tenant ON {table}(tenant_id, created_at);
"""


# Portable across SQLite, libSQL and PostgreSQL: TEXT/INTEGER/BIGINT/DOUBLE PRECISION
# column types and ON CONFLICT upserts only.
SCHEMA = """
-- Tenant Settings
CREATE TABLE IF NOT EXISTS tenant_settings (
    tenant_id TEXT PRIMARY KEY,
    openai_api_key TEXT,
    twilio_account_sid TEXT,
    twilio_auth_token TEXT,
    created_at BIGINT NOT NULL,
    updated_at BIGINT NOT NULL
);

-- API Keys
CREATE TABLE IF NOT EXISTS api_keys (
    key TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    name TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at BIGINT NOT NULL
);

-- Inbound Webhooks
CREATE TABLE IF NOT EXISTS inbound_webhooks (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    name TEXT NOT NULL,
    secret TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at BIGINT NOT NULL
);

CREATE TABLE IF NOT EXISTS webhook_logs (
    id TEXT PRIMARY KEY,
    webhook_id TEXT NOT NULL,
    status TEXT NOT NULL,
    http_status INTEGER,
    payload_size INTEGER,
    error_message TEXT,
    created_at BIGINT NOT NULL
);

-- Call Records
CREATE TABLE IF NOT EXISTS call_records (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    webhook_id TEXT,
    provider_call_id TEXT,
    phone_number TEXT,
    customer_number TEXT NOT NULL,
    recording_url TEXT,
    ended_reason TEXT,
    summary TEXT,
    structured_data TEXT DEFAULT '{}',
    raw_payload TEXT DEFAULT '{}',
    duration_seconds INTEGER,
    caller_name TEXT,
    caller_type TEXT,
    carrier_name TEXT,
    line_type TEXT,
    intent TEXT,
    sentiment TEXT,
    outcome TEXT,
    customer_name TEXT,
    customer_email TEXT,
    appointment_date TEXT,
    appointment_time TEXT,
    appointment_datetime BIGINT,
    appointment_type TEXT,
    appointment_notes TEXT,
    analysis_completed INTEGER NOT NULL DEFAULT 0,
    analyzed_at BIGINT,
    created_at BIGINT NOT NULL,
    UNIQUE (tenant_id, provider_call_id)
);

-- Active Calls
CREATE TABLE IF NOT EXISTS active_calls (
    tenant_id TEXT NOT NULL,
    provider_call_id TEXT NOT NULL,
    customer_number TEXT,
    caller_name TEXT,
    carrier_name TEXT,
    line_type TEXT,
    status TEXT NOT NULL,
    started_at BIGINT NOT NULL,
    updated_at BIGINT NOT NULL,
    PRIMARY KEY (tenant_id, provider_call_id)
);

-- OAuth Tokens
CREATE TABLE IF NOT EXISTS oauth_tokens (
    tenant_id TEXT NOT NULL,
    provider TEXT NOT NULL,
    access_token TEXT NOT NULL,
    refresh_token TEXT,
    expires_at BIGINT NOT NULL,
    instance_url TEXT,
    created_at BIGINT NOT NULL,
    updated_at BIGINT NOT NULL,
    PRIMARY KEY (tenant_id, provider)
);

-- Outbound Webhooks
CREATE TABLE IF NOT EXISTS outbound_webhooks (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    name TEXT NOT NULL,
    destination_url TEXT NOT NULL,
    events TEXT NOT NULL DEFAULT 'call.ended',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at BIGINT NOT NULL,
    updated_at BIGINT NOT NULL
);

CREATE TABLE IF NOT EXISTS outbound_webhook_logs (
    id TEXT PRIMARY KEY,
    outbound_webhook_id TEXT NOT NULL,
    event_type TEXT NOT NULL,
    call_id TEXT NOT NULL,
    status TEXT NOT NULL,
    http_status INTEGER,
    response_body TEXT,
    error_message TEXT,
    created_at BIGINT NOT NULL
);

-- Scheduling Triggers
CREATE TABLE IF NOT EXISTS scheduling_triggers (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    name TEXT NOT NULL,
    destination_url TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    send_enhanced_data INTEGER NOT NULL DEFAULT 0,
    created_at BIGINT NOT NULL,
    updated_at BIGINT NOT NULL
);

CREATE TABLE IF NOT EXISTS scheduling_trigger_logs (
    id TEXT PRIMARY KEY,
    trigger_id TEXT NOT NULL,
    call_id TEXT NOT NULL,
    status TEXT NOT NULL,
    http_status INTEGER,
    response_body TEXT,
    error_message TEXT,
    payload_sent TEXT,
    created_at BIGINT NOT NULL
);

-- Keywords
CREATE TABLE IF NOT EXISTS call_keywords (
    id TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    keyword TEXT NOT NULL,
    count INTEGER NOT NULL DEFAULT 0,
    positive_count INTEGER NOT NULL DEFAULT 0,
    neutral_count INTEGER NOT NULL DEFAULT 0,
    negative_count INTEGER NOT NULL DEFAULT 0,
    avg_sentiment DOUBLE PRECISION NOT NULL DEFAULT 0,
    last_detected_at BIGINT NOT NULL,
    created_at BIGINT NOT NULL,
    UNIQUE (tenant_id, keyword)
);

-- Addons
CREATE TABLE IF NOT EXISTS tenant_addons (
    tenant_id TEXT NOT NULL,
    addon_type TEXT NOT NULL,
    is_enabled INTEGER NOT NULL DEFAULT 1,
    PRIMARY KEY (tenant_id, addon_type)
);

CREATE TABLE IF NOT EXISTS addon_results (
    id TEXT PRIMARY KEY,
    call_id TEXT NOT NULL,
    tenant_id TEXT NOT NULL,
    addon_type TEXT NOT NULL,
    status TEXT NOT NULL,
    result_data TEXT,
    error_message TEXT,
    execution_time_ms INTEGER,
    created_at BIGINT NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_call_records_tenant ON call_records(tenant_id, created_at);
CREATE INDEX IF NOT EXISTS idx_active_calls_updated ON active_calls(updated_at);
CREATE INDEX IF NOT EXISTS idx_outbound_webhook_logs_webhook ON outbound_webhook_logs(outbound_webhook_id, created_at);
CREATE INDEX IF NOT EXISTS idx_webhook_logs_webhook ON webhook_logs(webhook_id, created_at);
""" + "".join(_sync_log_table_sql(t) for t in SYNC_LOG_TABLES.values())

SCHEMA_TABLES = (
    "call_records",
    "active_calls",
    "oauth_tokens",
    "outbound_webhooks",
    "call_keywords",
) + tuple(SYNC_LOG_TABLES.values())
