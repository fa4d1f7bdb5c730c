"""
Tests for the OAuth token vault
"""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from call_relay.core.exceptions import (
    IntegrationNotConnectedError,
    TokenExchangeError,
    TokenRefreshError,
    UnsupportedProviderError,
    ValidationError,
)
from call_relay.db import now_ts
from call_relay.services.crm.token_vault import TokenVault

SF_TOKEN_URL = "https://login.salesforce.com/services/oauth2/token"
HS_TOKEN_URL = "https://api.hubapi.com/oauth/v1/token"
DYN_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"


@pytest.fixture
def vault(repository, http_client, test_settings):
    return TokenVault(repository, http_client, test_settings)


class TestAuthorizationUrl:

    def test_salesforce_url(self, vault):
        url = urlparse(vault.build_authorization_url("salesforce", "state-1"))
        query = parse_qs(url.query)

        assert url.netloc == "login.salesforce.com"
        assert query["client_id"] == ["sf-client"]
        assert query["state"] == ["state-1"]
        assert query["redirect_uri"] == ["https://relay.example.com/api/v1/connect/salesforce/callback"]

    def test_dynamics_scope_uses_instance(self, vault):
        url = vault.build_authorization_url("dynamics", "s", "https://acme.crm.dynamics.com")
        query = parse_qs(urlparse(url).query)

        assert query["scope"] == ["https://acme.crm.dynamics.com/user_impersonation offline_access"]
        assert query["response_mode"] == ["query"]

    def test_dynamics_requires_instance(self, vault):
        with pytest.raises(ValidationError):
            vault.build_authorization_url("dynamics", "s")

    def test_unknown_provider(self, vault):
        with pytest.raises(UnsupportedProviderError):
            vault.build_authorization_url("pipedrive", "s")


class TestRefreshWindow:

    def test_needs_refresh_inside_skew(self, vault, token_factory):
        now = 1_700_000_000
        assert vault.needs_refresh(token_factory(expires_at=now + 300), now)
        assert vault.needs_refresh(token_factory(expires_at=now - 5), now)
        assert not vault.needs_refresh(token_factory(expires_at=now + 301), now)


class TestExchange:

    @pytest.mark.asyncio
    async def test_exchange_persists_token(self, vault, transport, repository):
        transport.add("POST", HS_TOKEN_URL, httpx.Response(200, json={
            "access_token": "at-1", "refresh_token": "rt-1", "expires_in": 1800,
        }))

        token = await vault.exchange_code("tenant_a", "hubspot", "code-1")

        stored = await repository.get_token("tenant_a", "hubspot")
        assert stored.access_token == "at-1"
        assert stored.instance_url == "https://api.hubapi.com"
        assert token.expires_at >= now_ts() + 1790

        form = parse_qs(transport.requests[0].content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["client_secret"] == ["hs-secret"]

    @pytest.mark.asyncio
    async def test_salesforce_ignores_expires_in(self, vault, transport):
        transport.add("POST", SF_TOKEN_URL, httpx.Response(200, json={
            "access_token": "at", "refresh_token": "rt",
            "instance_url": "https://acme.my.salesforce.com", "expires_in": 60,
        }))

        token = await vault.exchange_code("tenant_a", "salesforce", "code")

        assert token.expires_at >= now_ts() + 7190
        assert token.instance_url == "https://acme.my.salesforce.com"

    @pytest.mark.asyncio
    async def test_dynamics_sends_scope_and_keeps_instance(self, vault, transport):
        transport.add("POST", DYN_TOKEN_URL, httpx.Response(200, json={
            "access_token": "at", "refresh_token": "rt", "expires_in": 3600,
        }))

        token = await vault.exchange_code("tenant_a", "dynamics", "code", "https://acme.crm.dynamics.com")

        form = parse_qs(transport.requests[0].content.decode())
        assert form["scope"] == ["https://acme.crm.dynamics.com/user_impersonation offline_access"]
        assert token.instance_url == "https://acme.crm.dynamics.com"

    @pytest.mark.asyncio
    async def test_rejected_exchange_raises(self, vault, transport):
        transport.add("POST", HS_TOKEN_URL, httpx.Response(400, json={"error": "invalid_grant"}))

        with pytest.raises(TokenExchangeError):
            await vault.exchange_code("tenant_a", "hubspot", "bad")


class TestEnsureValidToken:

    @pytest.mark.asyncio
    async def test_missing_token_is_not_connected(self, vault):
        with pytest.raises(IntegrationNotConnectedError) as exc:
            await vault.ensure_valid_token("tenant_a", "hubspot")
        assert exc.value.message == "HubSpot not connected"

    @pytest.mark.asyncio
    async def test_fresh_token_returned_without_http(self, vault, repository, transport, token_factory):
        await repository.save_token(token_factory("hubspot"))

        token = await vault.ensure_valid_token("tenant_a", "hubspot")

        assert token.access_token == "hubspot-access"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_expiring_token_is_refreshed_and_saved(self, vault, repository, transport, token_factory):
        await repository.save_token(token_factory("hubspot", expires_at=now_ts() + 60))
        transport.add("POST", HS_TOKEN_URL, httpx.Response(200, json={
            "access_token": "new-access", "expires_in": 1800,
        }))

        token = await vault.ensure_valid_token("tenant_a", "hubspot")

        assert token.access_token == "new-access"
        assert token.refresh_token == "hubspot-refresh"
        stored = await repository.get_token("tenant_a", "hubspot")
        assert stored.access_token == "new-access"
        form = parse_qs(transport.requests[0].content.decode())
        assert form["grant_type"] == ["refresh_token"]

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, vault, repository, token_factory):
        await repository.save_token(token_factory("hubspot", refresh_token=None, expires_at=now_ts() - 10))

        with pytest.raises(IntegrationNotConnectedError):
            await vault.ensure_valid_token("tenant_a", "hubspot")

    @pytest.mark.asyncio
    async def test_refresh_rejected(self, vault, repository, transport, token_factory):
        await repository.save_token(token_factory("hubspot", expires_at=now_ts()))
        transport.add("POST", HS_TOKEN_URL, httpx.Response(401, text="revoked"))

        with pytest.raises(TokenRefreshError):
            await vault.ensure_valid_token("tenant_a", "hubspot")


class TestDisconnect:

    @pytest.mark.asyncio
    async def test_disconnect_removes_token(self, vault, repository, token_factory):
        await repository.save_token(token_factory("salesforce"))

        assert await vault.disconnect("tenant_a", "salesforce") is True
        assert await vault.status("tenant_a", "salesforce") is None
        assert await vault.disconnect("tenant_a", "salesforce") is False
