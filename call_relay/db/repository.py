"""
Call Relay Repository

Concrete data access for every table, working with any DatabaseAdapter
(SQLite, Turso, PostgreSQL). All queries use `?` placeholders.
"""

import json
import logging
from typing import Optional, List, Dict, Any

from call_relay.db.base import DatabaseAdapter
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
    SYNC_LOG_TABLES,
    now_ts,
)

logger = logging.getLogger(__name__)

CALL_JSON_FIELDS = ("structured_data", "raw_payload")
CALL_BOOL_FIELDS = ("analysis_completed",)

CALL_UPDATABLE_FIELDS = {
    "intent", "sentiment", "outcome", "customer_name", "customer_email",
    "appointment_date", "appointment_time", "appointment_datetime",
    "appointment_type", "appointment_notes", "analysis_completed", "analyzed_at",
    "caller_name", "caller_type", "carrier_name", "line_type", "summary",
}

OUTBOUND_WEBHOOK_UPDATABLE_FIELDS = {"name", "destination_url", "events", "is_active"}


def _db_value(value: Any) -> Any:
    """Coerce Python values into driver-neutral column values."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return value


def _load_json(value: Any) -> Dict[str, Any]:
    if not value:
        return {}
    if isinstance(value, dict):
        return value
    try:
        loaded = json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return {}
    return loaded if isinstance(loaded, dict) else {}


class CallRelayRepository:
    """
    Repository for all persisted call relay data.

    Methods are grouped by table; every tenant-scoped read filters on
    tenant_id so one tenant can never observe another's rows.
    """

    def __init__(self, adapter: DatabaseAdapter):
        """
        Initialize the repository with a database adapter.

        Args:
            adapter: A DatabaseAdapter implementation
        """
        self.adapter = adapter

    async def initialize(self) -> bool:
        """
        Initialize the repository (connect and setup schema).

        Returns:
            True if initialization successful, False otherwise.
        """
        connected = await self.adapter.connect()
        if not connected:
            return False
        return await self.adapter.initialize_schema()

    async def close(self) -> None:
        """Close the database connection."""
        await self.adapter.disconnect()

    async def _insert(self, table: str, values: Dict[str, Any]) -> None:
        columns = ", ".join(values.keys())
        placeholders = ", ".join("?" for _ in values)
        await self.adapter.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            tuple(_db_value(v) for v in values.values()),
        )

    # ==================== Tenants ====================

    async def get_tenant_id_for_api_key(self, api_key: str) -> Optional[str]:
        row = await self.adapter.fetch_one(
            "SELECT tenant_id FROM api_keys WHERE key = ? AND is_active = 1",
            (api_key,),
        )
        return row["tenant_id"] if row else None

    async def create_api_key(self, tenant_id: str, api_key: str, name: str = "default") -> None:
        await self._insert("api_keys", {
            "key": api_key,
            "tenant_id": tenant_id,
            "name": name,
            "is_active": 1,
            "created_at": now_ts(),
        })

    async def get_tenant_settings(self, tenant_id: str) -> Optional[TenantSettingsDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM tenant_settings WHERE tenant_id = ?", (tenant_id,)
        )
        return TenantSettingsDB(**row) if row else None

    async def upsert_tenant_settings(self, tenant_settings: TenantSettingsDB) -> TenantSettingsDB:
        query = """
            INSERT INTO tenant_settings (
                tenant_id, openai_api_key, twilio_account_sid, twilio_auth_token,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (tenant_id) DO UPDATE SET
                openai_api_key = excluded.openai_api_key,
                twilio_account_sid = excluded.twilio_account_sid,
                twilio_auth_token = excluded.twilio_auth_token,
                updated_at = excluded.updated_at
        """
        await self.adapter.execute(query, (
            tenant_settings.tenant_id,
            tenant_settings.openai_api_key,
            tenant_settings.twilio_account_sid,
            tenant_settings.twilio_auth_token,
            tenant_settings.created_at,
            now_ts(),
        ))
        return tenant_settings

    # ==================== Inbound Webhooks ====================

    async def create_inbound_webhook(self, webhook: InboundWebhookDB) -> InboundWebhookDB:
        await self._insert("inbound_webhooks", webhook.model_dump())
        logger.info(f"Registered inbound webhook {webhook.id} for tenant {webhook.tenant_id}")
        return webhook

    async def get_inbound_webhook(self, webhook_id: str) -> Optional[InboundWebhookDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM inbound_webhooks WHERE id = ?", (webhook_id,)
        )
        return InboundWebhookDB(**row) if row else None

    async def list_inbound_webhooks(self, tenant_id: str) -> List[InboundWebhookDB]:
        rows = await self.adapter.fetch_all(
            "SELECT * FROM inbound_webhooks WHERE tenant_id = ? ORDER BY created_at DESC",
            (tenant_id,),
        )
        return [InboundWebhookDB(**row) for row in rows]

    async def log_webhook_event(
        self,
        log_id: str,
        webhook_id: str,
        status: str,
        http_status: int,
        payload_size: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        await self._insert("webhook_logs", {
            "id": log_id,
            "webhook_id": webhook_id,
            "status": status,
            "http_status": http_status,
            "payload_size": payload_size,
            "error_message": error_message,
            "created_at": now_ts(),
        })

    async def list_webhook_logs(self, webhook_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return await self.adapter.fetch_all(
            "SELECT * FROM webhook_logs WHERE webhook_id = ? ORDER BY created_at DESC LIMIT ?",
            (webhook_id, limit),
        )

    # ==================== Call Records ====================

    async def create_call(self, call: CallRecordDB) -> CallRecordDB:
        """Create a new call record."""
        await self._insert("call_records", call.model_dump())
        logger.info(f"Created call record: {call.id}")
        return call

    async def get_call(self, tenant_id: str, call_id: str) -> Optional[CallRecordDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM call_records WHERE id = ? AND tenant_id = ?",
            (call_id, tenant_id),
        )
        return self._row_to_call_record(row) if row else None

    async def get_call_by_provider_id(
        self, tenant_id: str, provider_call_id: str
    ) -> Optional[CallRecordDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM call_records WHERE tenant_id = ? AND provider_call_id = ?",
            (tenant_id, provider_call_id),
        )
        return self._row_to_call_record(row) if row else None

    async def list_calls(self, tenant_id: str, limit: int = 50, offset: int = 0) -> List[CallRecordDB]:
        rows = await self.adapter.fetch_all(
            "SELECT * FROM call_records WHERE tenant_id = ? "
            "ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (tenant_id, limit, offset),
        )
        return [self._row_to_call_record(row) for row in rows]

    async def count_calls(self, tenant_id: str) -> int:
        row = await self.adapter.fetch_one(
            "SELECT COUNT(*) AS total FROM call_records WHERE tenant_id = ?", (tenant_id,)
        )
        return int(row["total"]) if row else 0

    async def update_call(self, call_id: str, updates: Dict[str, Any]) -> int:
        """Update analysis/caller columns of a call record."""
        unknown = set(updates) - CALL_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update call columns: {sorted(unknown)}")
        if not updates:
            return 0

        set_clauses = [f"{key} = ?" for key in updates]
        params = [_db_value(v) for v in updates.values()]
        params.append(call_id)
        return await self.adapter.execute(
            f"UPDATE call_records SET {', '.join(set_clauses)} WHERE id = ?",
            tuple(params),
        )

    def _row_to_call_record(self, row: Dict[str, Any]) -> CallRecordDB:
        data = dict(row)
        for field in CALL_JSON_FIELDS:
            data[field] = _load_json(data.get(field))
        for field in CALL_BOOL_FIELDS:
            data[field] = bool(data.get(field))
        data["ended_reason"] = data.get("ended_reason") or "unknown"
        data["summary"] = data.get("summary") or ""
        return CallRecordDB(**data)

    # ==================== Active Calls ====================

    async def upsert_active_call(self, active: ActiveCallDB) -> None:
        query = """
            INSERT INTO active_calls (
                tenant_id, provider_call_id, customer_number, caller_name,
                carrier_name, line_type, status, started_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (tenant_id, provider_call_id) DO UPDATE SET
                customer_number = excluded.customer_number,
                caller_name = COALESCE(excluded.caller_name, active_calls.caller_name),
                carrier_name = COALESCE(excluded.carrier_name, active_calls.carrier_name),
                line_type = COALESCE(excluded.line_type, active_calls.line_type),
                status = excluded.status,
                updated_at = excluded.updated_at
        """
        await self.adapter.execute(query, (
            active.tenant_id,
            active.provider_call_id,
            active.customer_number,
            active.caller_name,
            active.carrier_name,
            active.line_type,
            active.status,
            active.started_at,
            active.updated_at,
        ))

    async def delete_active_call(self, tenant_id: str, provider_call_id: str) -> int:
        return await self.adapter.execute(
            "DELETE FROM active_calls WHERE tenant_id = ? AND provider_call_id = ?",
            (tenant_id, provider_call_id),
        )

    async def list_active_calls(self, tenant_id: str) -> List[ActiveCallDB]:
        rows = await self.adapter.fetch_all(
            "SELECT * FROM active_calls WHERE tenant_id = ? ORDER BY started_at DESC",
            (tenant_id,),
        )
        return [ActiveCallDB(**row) for row in rows]

    async def delete_stale_active_calls(
        self, older_than: int, tenant_id: Optional[str] = None
    ) -> int:
        """Delete ActiveCall rows not updated since `older_than` (epoch seconds)."""
        if tenant_id:
            return await self.adapter.execute(
                "DELETE FROM active_calls WHERE updated_at < ? AND tenant_id = ?",
                (older_than, tenant_id),
            )
        return await self.adapter.execute(
            "DELETE FROM active_calls WHERE updated_at < ?", (older_than,)
        )

    # ==================== OAuth Tokens ====================

    async def get_token(self, tenant_id: str, provider: str) -> Optional[OAuthTokenDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM oauth_tokens WHERE tenant_id = ? AND provider = ?",
            (tenant_id, provider),
        )
        return OAuthTokenDB(**row) if row else None

    async def save_token(self, token: OAuthTokenDB) -> OAuthTokenDB:
        query = """
            INSERT INTO oauth_tokens (
                tenant_id, provider, access_token, refresh_token, expires_at,
                instance_url, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (tenant_id, provider) DO UPDATE SET
                access_token = excluded.access_token,
                refresh_token = COALESCE(excluded.refresh_token, oauth_tokens.refresh_token),
                expires_at = excluded.expires_at,
                instance_url = COALESCE(excluded.instance_url, oauth_tokens.instance_url),
                updated_at = excluded.updated_at
        """
        await self.adapter.execute(query, (
            token.tenant_id,
            token.provider,
            token.access_token,
            token.refresh_token,
            token.expires_at,
            token.instance_url,
            token.created_at,
            token.updated_at,
        ))
        return token

    async def delete_token(self, tenant_id: str, provider: str) -> int:
        return await self.adapter.execute(
            "DELETE FROM oauth_tokens WHERE tenant_id = ? AND provider = ?",
            (tenant_id, provider),
        )

    # ==================== Sync Logs ====================

    @staticmethod
    def _sync_table(provider: str) -> str:
        try:
            return SYNC_LOG_TABLES[provider]
        except KeyError:
            raise ValueError(f"Unknown provider: {provider}")

    async def create_sync_log(self, provider: str, log: SyncLogDB) -> SyncLogDB:
        await self._insert(self._sync_table(provider), log.model_dump())
        return log

    async def list_sync_logs(
        self,
        provider: str,
        tenant_id: str,
        limit: int = 50,
        offset: int = 0,
        status: Optional[str] = None,
    ) -> List[SyncLogDB]:
        table = self._sync_table(provider)
        query = f"SELECT * FROM {table} WHERE tenant_id = ?"
        params: List[Any] = [tenant_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        rows = await self.adapter.fetch_all(query, tuple(params))
        return [SyncLogDB(**{**row, "record_created": bool(row["record_created"])}) for row in rows]

    async def count_sync_logs(self, provider: str, tenant_id: str, status: Optional[str] = None) -> int:
        table = self._sync_table(provider)
        query = f"SELECT COUNT(*) AS total FROM {table} WHERE tenant_id = ?"
        params: List[Any] = [tenant_id]
        if status:
            query += " AND status = ?"
            params.append(status)
        row = await self.adapter.fetch_one(query, tuple(params))
        return int(row["total"]) if row else 0

    # ==================== Outbound Webhooks ====================

    async def create_outbound_webhook(self, webhook: OutboundWebhookDB) -> OutboundWebhookDB:
        await self._insert("outbound_webhooks", webhook.model_dump())
        return webhook

    async def get_outbound_webhook(self, tenant_id: str, webhook_id: str) -> Optional[OutboundWebhookDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM outbound_webhooks WHERE id = ? AND tenant_id = ?",
            (webhook_id, tenant_id),
        )
        return OutboundWebhookDB(**row) if row else None

    async def list_outbound_webhooks(
        self, tenant_id: str, active_only: bool = False
    ) -> List[OutboundWebhookDB]:
        query = "SELECT * FROM outbound_webhooks WHERE tenant_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY created_at DESC"
        rows = await self.adapter.fetch_all(query, (tenant_id,))
        return [OutboundWebhookDB(**row) for row in rows]

    async def update_outbound_webhook(
        self, tenant_id: str, webhook_id: str, updates: Dict[str, Any]
    ) -> Optional[OutboundWebhookDB]:
        unknown = set(updates) - OUTBOUND_WEBHOOK_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update webhook columns: {sorted(unknown)}")
        if updates:
            updates = {**updates, "updated_at": now_ts()}
            set_clauses = [f"{key} = ?" for key in updates]
            params = [_db_value(v) for v in updates.values()] + [webhook_id, tenant_id]
            await self.adapter.execute(
                f"UPDATE outbound_webhooks SET {', '.join(set_clauses)} "
                "WHERE id = ? AND tenant_id = ?",
                tuple(params),
            )
        return await self.get_outbound_webhook(tenant_id, webhook_id)

    async def delete_outbound_webhook(self, tenant_id: str, webhook_id: str) -> bool:
        deleted = await self.adapter.execute(
            "DELETE FROM outbound_webhooks WHERE id = ? AND tenant_id = ?",
            (webhook_id, tenant_id),
        )
        if deleted:
            await self.adapter.execute(
                "DELETE FROM outbound_webhook_logs WHERE outbound_webhook_id = ?",
                (webhook_id,),
            )
        return deleted > 0

    async def create_outbound_webhook_log(self, log: OutboundWebhookLogDB) -> OutboundWebhookLogDB:
        await self._insert("outbound_webhook_logs", log.model_dump())
        return log

    async def list_outbound_webhook_logs(
        self, webhook_id: str, limit: int = 50, offset: int = 0
    ) -> List[OutboundWebhookLogDB]:
        rows = await self.adapter.fetch_all(
            "SELECT * FROM outbound_webhook_logs WHERE outbound_webhook_id = ? "
            "ORDER BY created_at DESC LIMIT ? OFFSET ?",
            (webhook_id, limit, offset),
        )
        return [OutboundWebhookLogDB(**row) for row in rows]

    # ==================== Scheduling Triggers ====================

    async def create_scheduling_trigger(self, trigger: SchedulingTriggerDB) -> SchedulingTriggerDB:
        await self._insert("scheduling_triggers", trigger.model_dump())
        return trigger

    async def list_scheduling_triggers(
        self, tenant_id: str, active_only: bool = False
    ) -> List[SchedulingTriggerDB]:
        query = "SELECT * FROM scheduling_triggers WHERE tenant_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY created_at DESC"
        rows = await self.adapter.fetch_all(query, (tenant_id,))
        return [SchedulingTriggerDB(**row) for row in rows]

    async def delete_scheduling_trigger(self, tenant_id: str, trigger_id: str) -> bool:
        deleted = await self.adapter.execute(
            "DELETE FROM scheduling_triggers WHERE id = ? AND tenant_id = ?",
            (trigger_id, tenant_id),
        )
        return deleted > 0

    async def create_scheduling_trigger_log(self, log: Dict[str, Any]) -> None:
        await self._insert("scheduling_trigger_logs", {**log, "created_at": now_ts()})

    async def list_scheduling_trigger_logs(self, trigger_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return await self.adapter.fetch_all(
            "SELECT * FROM scheduling_trigger_logs WHERE trigger_id = ? "
            "ORDER BY created_at DESC LIMIT ?",
            (trigger_id, limit),
        )

    # ==================== Keywords ====================

    async def get_keyword(self, tenant_id: str, keyword: str) -> Optional[KeywordDB]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM call_keywords WHERE tenant_id = ? AND keyword = ?",
            (tenant_id, keyword),
        )
        return KeywordDB(**row) if row else None

    async def insert_keyword(self, keyword: KeywordDB) -> None:
        await self._insert("call_keywords", keyword.model_dump())

    async def update_keyword_counts(self, keyword: KeywordDB) -> None:
        await self.adapter.execute(
            """
            UPDATE call_keywords
            SET count = ?, positive_count = ?, neutral_count = ?, negative_count = ?,
                avg_sentiment = ?, last_detected_at = ?
            WHERE id = ?
            """,
            (
                keyword.count,
                keyword.positive_count,
                keyword.neutral_count,
                keyword.negative_count,
                keyword.avg_sentiment,
                keyword.last_detected_at,
                keyword.id,
            ),
        )

    async def list_keywords(self, tenant_id: str, limit: int = 50) -> List[KeywordDB]:
        rows = await self.adapter.fetch_all(
            "SELECT * FROM call_keywords WHERE tenant_id = ? ORDER BY count DESC LIMIT ?",
            (tenant_id, limit),
        )
        return [KeywordDB(**row) for row in rows]

    # ==================== Addons ====================

    async def set_addon(self, tenant_id: str, addon_type: str, enabled: bool) -> None:
        await self.adapter.execute(
            """
            INSERT INTO tenant_addons (tenant_id, addon_type, is_enabled) VALUES (?, ?, ?)
            ON CONFLICT (tenant_id, addon_type) DO UPDATE SET is_enabled = excluded.is_enabled
            """,
            (tenant_id, addon_type, int(enabled)),
        )

    async def list_enabled_addons(self, tenant_id: str) -> List[str]:
        rows = await self.adapter.fetch_all(
            "SELECT addon_type FROM tenant_addons WHERE tenant_id = ? AND is_enabled = 1",
            (tenant_id,),
        )
        return [row["addon_type"] for row in rows]

    async def create_addon_result(self, result: Dict[str, Any]) -> None:
        await self._insert("addon_results", {**result, "created_at": now_ts()})

    async def get_addon_result(
        self, tenant_id: str, call_id: str, addon_type: str
    ) -> Optional[Dict[str, Any]]:
        row = await self.adapter.fetch_one(
            "SELECT * FROM addon_results WHERE tenant_id = ? AND call_id = ? "
            "AND addon_type = ? AND status = 'success' ORDER BY created_at DESC LIMIT 1",
            (tenant_id, call_id, addon_type),
        )
        if not row:
            return None
        return {**row, "result_data": _load_json(row.get("result_data"))}
