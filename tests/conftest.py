"""
Pytest configuration and fixtures
"""

import fnmatch
import os
from typing import Callable, List

import httpx
import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables before importing app modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_TYPE", "sqlite")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient

from call_relay.core.config import Settings
from call_relay.db import CallRelayRepository, CallRecordDB, InboundWebhookDB, OAuthTokenDB, now_ts
from call_relay.db.adapters.sqlite import SQLiteAdapter
from call_relay.services.cache import CacheStore


class FakeRedis:
    """In-memory stand-in for the subset of redis.asyncio used by CacheStore"""

    def __init__(self):
        self.store = {}
        self.expiry = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match=None):
        for key in list(self.store):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        return True

    async def aclose(self):
        pass


class RecordingTransport:
    """httpx.MockTransport handler that records requests and replies from a route table"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes = []

    def add(self, method: str, url_prefix: str, responder):
        """`responder` is an httpx.Response or a callable(request) -> httpx.Response"""
        self.routes.append((method.upper(), url_prefix, responder))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for method, prefix, responder in self.routes:
            if request.method == method and url.startswith(prefix):
                return responder(request) if callable(responder) else responder
        return httpx.Response(404, json={"error": "no route"})

    def sent(self, method: str, url_prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and str(r.url).startswith(url_prefix)]


@pytest.fixture
def test_settings(tmp_path):
    """Explicit settings, independent of any local .env"""
    return Settings(
        _env_file=None,
        environment="test",
        secret_key="test-secret-key",
        api_base_url="https://relay.example.com",
        dashboard_url="https://app.example.com/settings",
        database_type="sqlite",
        sqlite_path=str(tmp_path / "test.db"),
        salesforce_client_id="sf-client",
        salesforce_client_secret="sf-secret",
        hubspot_client_id="hs-client",
        hubspot_client_secret="hs-secret",
        dynamics_client_id="dyn-client",
        dynamics_client_secret="dyn-secret",
        enhanced_data_url="https://enrich.example.com/phone",
    )


@pytest_asyncio.fixture
async def repository(test_settings):
    repo = CallRelayRepository(SQLiteAdapter(test_settings.sqlite_path))
    assert await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis, test_settings):
    return CacheStore(fake_redis, test_settings)


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest_asyncio.fixture
async def http_client(transport):
    client = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    yield client
    await client.aclose()


@pytest.fixture
def make_call() -> Callable[..., CallRecordDB]:
    """Factory for persisted-shape call records"""

    def _make(**overrides) -> CallRecordDB:
        values = {
            "id": "call_test",
            "tenant_id": "tenant_a",
            "webhook_id": "wh_test",
            "provider_call_id": "vapi-call-1",
            "phone_number": "+15559876543",
            "customer_number": "+15551234567",
            "ended_reason": "customer-ended-call",
            "summary": "Caller asked to book a consultation.",
            "duration_seconds": 125,
        }
        values.update(overrides)
        return CallRecordDB(**values)

    return _make


@pytest.fixture
def token_factory() -> Callable[..., OAuthTokenDB]:
    def _make(provider: str = "hubspot", **overrides) -> OAuthTokenDB:
        values = {
            "tenant_id": "tenant_a",
            "provider": provider,
            "access_token": f"{provider}-access",
            "refresh_token": f"{provider}-refresh",
            "expires_at": now_ts() + 3600,
            "instance_url": {
                "salesforce": "https://acme.my.salesforce.com",
                "hubspot": "https://api.hubapi.com",
                "dynamics": "https://acme.crm.dynamics.com",
            }.get(provider),
        }
        values.update(overrides)
        return OAuthTokenDB(**values)

    return _make


@pytest.fixture
def mock_caller_lookup():
    lookup = MagicMock()
    lookup.lookup = AsyncMock(return_value=None)
    return lookup


@pytest.fixture
def app_context(test_settings, fake_redis, transport, mock_caller_lookup):
    """AppContext on SQLite, the Redis double and the recording HTTP transport"""
    from call_relay.context import build_context

    return build_context(
        test_settings,
        repository=CallRelayRepository(SQLiteAdapter(test_settings.sqlite_path)),
        redis_client=fake_redis,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)),
        caller_lookup=mock_caller_lookup,
    )


@pytest.fixture
def test_client(app_context):
    """Test client with a seeded tenant, API key and inbound webhook"""
    from call_relay.main import create_app

    app = create_app(app_context)
    with TestClient(app) as client:
        repo = app_context.repository
        client.portal.call(repo.create_api_key, "tenant_a", "key-a")
        client.portal.call(repo.create_api_key, "tenant_b", "key-b")
        client.portal.call(repo.create_inbound_webhook, InboundWebhookDB(
            id="wh_open", tenant_id="tenant_a", name="Open"
        ))
        client.portal.call(repo.create_inbound_webhook, InboundWebhookDB(
            id="wh_secret", tenant_id="tenant_a", name="Guarded", secret="s3cret"
        ))
        client.portal.call(repo.create_inbound_webhook, InboundWebhookDB(
            id="wh_off", tenant_id="tenant_a", name="Disabled", is_active=False
        ))
        yield client


@pytest.fixture
def drain(test_client, app_context):
    """Wait for background jobs submitted during a request"""
    return lambda: test_client.portal.call(app_context.supervisor.drain)


@pytest.fixture
def end_of_call_payload():
    return {
        "message": {
            "type": "end-of-call-report",
            "endedReason": "customer-ended-call",
            "durationSeconds": 93.4,
            "call": {"id": "vapi-call-1"},
            "customer": {"number": "+15551234567"},
            "phoneNumber": {"number": "+15559876543"},
            "assistant": {"name": "Front Desk"},
            "artifact": {
                "transcript": "User: I want to book a cleaning appointment. AI: Sure, cleaning appointment on Friday.",
                "recordingUrl": "https://recordings.example.com/1.wav",
                "messages": [
                    {"role": "system", "message": "prompt"},
                    {"role": "bot", "message": "Hi, how can I help?"},
                    {"role": "user", "message": "I want to book a cleaning."},
                ],
            },
            "analysis": {
                "summary": "Caller booked a cleaning.",
                "structuredData": {"appointmentDate": "2025-01-15", "appointmentTime": "2:00 PM"},
            },
        }
    }
