"""
Database Abstraction Layer

This module provides a clean abstraction for database operations,
making it easy to switch between database backends (SQLite, Turso,
PostgreSQL) with minimal code changes.

Usage:
    from call_relay.db import create_adapter, CallRelayRepository

    repo = CallRelayRepository(create_adapter(settings))
    await repo.initialize()
"""

from call_relay.core.config import Settings
from call_relay.db.base import DatabaseAdapter
from call_relay.db.repository import CallRelayRepository
from call_relay.db.models import (
    ActiveCallDB,
    CallRecordDB,
    InboundWebhookDB,
    KeywordDB,
    OAuthTokenDB,
    OutboundWebhookDB,
    OutboundWebhookLogDB,
    SchedulingTriggerDB,
    SyncLogDB,
    TenantSettingsDB,
    now_ts,
)


def create_adapter(config: Settings) -> DatabaseAdapter:
    """Build the adapter selected by DATABASE_TYPE."""
    database_type = config.database_type.lower()

    if database_type == "turso":
        from call_relay.db.adapters.turso import TursoAdapter
        return TursoAdapter(config.turso_db_url, config.turso_db_auth_token)

    if database_type in ("postgres", "postgresql"):
        from call_relay.db.adapters.postgres import PostgresAdapter
        return PostgresAdapter(config.database_url)

    if database_type == "sqlite":
        from call_relay.db.adapters.sqlite import SQLiteAdapter
        return SQLiteAdapter(config.sqlite_path)

    raise ValueError(f"Unsupported DATABASE_TYPE: {config.database_type}")


__all__ = [
    "create_adapter",
    "DatabaseAdapter",
    "CallRelayRepository",
    "ActiveCallDB",
    "CallRecordDB",
    "InboundWebhookDB",
    "KeywordDB",
    "OAuthTokenDB",
    "OutboundWebhookDB",
    "OutboundWebhookLogDB",
    "SchedulingTriggerDB",
    "SyncLogDB",
    "TenantSettingsDB",
    "now_ts",
]
