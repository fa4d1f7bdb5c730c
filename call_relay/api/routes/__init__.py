"""API Routes"""

from . import calls, connect, health, ingest, maintenance, outbound_webhooks, tenants

__all__ = ["calls", "connect", "health", "ingest", "maintenance", "outbound_webhooks", "tenants"]
