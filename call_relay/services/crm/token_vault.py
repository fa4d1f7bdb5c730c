"""
Token Vault
OAuth lifecycle for the CRM connectors: authorization URLs, code exchange,
refresh-before-use and disconnect. Every provider speaks the same
form-encoded token endpoint protocol, so one helper serves all of them.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from call_relay.core.config import Settings
from call_relay.core.exceptions import (
    IntegrationNotConnectedError,
    TokenExchangeError,
    TokenRefreshError,
    UnsupportedProviderError,
    ValidationError,
)
from call_relay.core.logging import get_logger
from call_relay.db.models import OAuthTokenDB, now_ts
from call_relay.db.repository import CallRelayRepository

logger = get_logger(__name__)


@dataclass
class ProviderConfig:
    """Static OAuth settings for one CRM provider"""
    name: str
    display_name: str
    authorize_url: str
    token_url: str
    client_id: Optional[str]
    client_secret: Optional[str]
    scope: Callable[[Optional[str]], str]
    default_expires_in: int
    # Salesforce never returns expires_in, so its default always applies
    trust_expires_in: bool = True
    fixed_instance_url: Optional[str] = None
    requires_instance_url: bool = False
    scope_on_token_requests: bool = False
    extra_authorize_params: Dict[str, str] = field(default_factory=dict)


def build_provider_configs(config: Settings) -> Dict[str, ProviderConfig]:
    """Provider table built from settings"""
    login = config.salesforce_login_url.rstrip("/")
    directory = config.dynamics_directory_id
    return {
        "salesforce": ProviderConfig(
            name="salesforce",
            display_name="Salesforce",
            authorize_url=f"{login}/services/oauth2/authorize",
            token_url=f"{login}/services/oauth2/token",
            client_id=config.salesforce_client_id,
            client_secret=config.salesforce_client_secret,
            scope=lambda _instance: "api refresh_token",
            default_expires_in=7200,
            trust_expires_in=False,
        ),
        "hubspot": ProviderConfig(
            name="hubspot",
            display_name="HubSpot",
            authorize_url="https://app.hubspot.com/oauth/authorize",
            token_url="https://api.hubapi.com/oauth/v1/token",
            client_id=config.hubspot_client_id,
            client_secret=config.hubspot_client_secret,
            scope=lambda _instance: "crm.objects.contacts.read crm.objects.contacts.write oauth",
            default_expires_in=1800,
            fixed_instance_url="https://api.hubapi.com",
        ),
        "dynamics": ProviderConfig(
            name="dynamics",
            display_name="Dynamics",
            authorize_url=f"https://login.microsoftonline.com/{directory}/oauth2/v2.0/authorize",
            token_url=f"https://login.microsoftonline.com/{directory}/oauth2/v2.0/token",
            client_id=config.dynamics_client_id,
            client_secret=config.dynamics_client_secret,
            scope=lambda instance: f"{(instance or '').rstrip('/')}/user_impersonation offline_access",
            default_expires_in=3600,
            requires_instance_url=True,
            scope_on_token_requests=True,
            extra_authorize_params={"response_mode": "query"},
        ),
    }


class TokenVault:
    """
    Stores OAuth tokens per (tenant, provider) and hands out valid access
    tokens, refreshing them when they are within the skew window of expiry.
    """

    def __init__(
        self,
        repository: CallRelayRepository,
        http_client: httpx.AsyncClient,
        config: Settings,
        providers: Optional[Dict[str, ProviderConfig]] = None,
    ):
        self.repository = repository
        self.http_client = http_client
        self.providers = providers or build_provider_configs(config)
        self.refresh_skew = config.token_refresh_skew_seconds
        self.callback_base_url = config.callback_base_url
        self.timeout = config.crm_http_timeout

    def provider(self, name: str) -> ProviderConfig:
        try:
            return self.providers[name]
        except KeyError:
            raise UnsupportedProviderError(name)

    def redirect_uri(self, provider: str) -> str:
        return f"{self.callback_base_url}/api/v1/connect/{provider}/callback"

    def build_authorization_url(
        self, provider: str, state: str, instance_url: Optional[str] = None
    ) -> str:
        cfg = self.provider(provider)
        if cfg.requires_instance_url and not instance_url:
            raise ValidationError(f"{cfg.display_name} requires an instance URL", field="instance_url")

        params = {
            "response_type": "code",
            "client_id": cfg.client_id or "",
            "redirect_uri": self.redirect_uri(provider),
            "scope": cfg.scope(instance_url),
            "state": state,
            **cfg.extra_authorize_params,
        }
        return f"{cfg.authorize_url}?{urlencode(params)}"

    def needs_refresh(self, token: OAuthTokenDB, now: Optional[int] = None) -> bool:
        now = now if now is not None else now_ts()
        return token.expires_at - now <= self.refresh_skew

    async def _request_token(self, cfg: ProviderConfig, form: Dict[str, str]) -> Dict[str, Any]:
        """POST a form-encoded grant to the provider token endpoint."""
        form = {
            **form,
            "client_id": cfg.client_id or "",
            "client_secret": cfg.client_secret or "",
        }
        response = await self.http_client.post(
            cfg.token_url,
            data=form,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()

    def _expires_at(self, cfg: ProviderConfig, payload: Dict[str, Any]) -> int:
        expires_in = payload.get("expires_in") if cfg.trust_expires_in else None
        try:
            seconds = int(expires_in) if expires_in is not None else cfg.default_expires_in
        except (TypeError, ValueError):
            seconds = cfg.default_expires_in
        return now_ts() + seconds

    async def exchange_code(
        self,
        tenant_id: str,
        provider: str,
        code: str,
        instance_url: Optional[str] = None,
    ) -> OAuthTokenDB:
        """Exchange an authorization code and persist the resulting tokens."""
        cfg = self.provider(provider)
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri(provider),
        }
        if cfg.scope_on_token_requests:
            form["scope"] = cfg.scope(instance_url)

        try:
            payload = await self._request_token(cfg, form)
        except httpx.HTTPStatusError as e:
            logger.error(f"{cfg.display_name} token exchange rejected: {e.response.text}")
            raise TokenExchangeError(provider, "Failed to exchange code", e.response.status_code)
        except httpx.HTTPError as e:
            raise TokenExchangeError(provider, f"Token endpoint unreachable: {e}")

        if not payload.get("access_token"):
            raise TokenExchangeError(provider, "Token response missing access_token")

        token = OAuthTokenDB(
            tenant_id=tenant_id,
            provider=provider,
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_at=self._expires_at(cfg, payload),
            instance_url=payload.get("instance_url") or instance_url or cfg.fixed_instance_url,
        )
        await self.repository.save_token(token)
        logger.info(f"Connected {cfg.display_name} for tenant {tenant_id}")
        return token

    async def refresh(self, token: OAuthTokenDB) -> OAuthTokenDB:
        """Run the refresh_token grant and persist the new access token."""
        cfg = self.provider(token.provider)
        if not token.refresh_token:
            raise IntegrationNotConnectedError(cfg.display_name, token.tenant_id)

        form = {"grant_type": "refresh_token", "refresh_token": token.refresh_token}
        if cfg.scope_on_token_requests:
            form["scope"] = cfg.scope(token.instance_url)

        try:
            payload = await self._request_token(cfg, form)
        except httpx.HTTPStatusError as e:
            raise TokenRefreshError(
                token.provider,
                f"{cfg.display_name} token refresh failed: {e.response.text[:200]}",
                e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise TokenRefreshError(token.provider, f"{cfg.display_name} token endpoint unreachable: {e}")

        refreshed = token.model_copy(update={
            "access_token": payload["access_token"],
            "refresh_token": payload.get("refresh_token") or token.refresh_token,
            "expires_at": self._expires_at(cfg, payload),
            "instance_url": payload.get("instance_url") or token.instance_url,
            "updated_at": now_ts(),
        })
        await self.repository.save_token(refreshed)
        logger.info(f"Refreshed {cfg.display_name} token for tenant {token.tenant_id}")
        return refreshed

    async def ensure_valid_token(self, tenant_id: str, provider: str) -> OAuthTokenDB:
        """Return a token valid for at least the skew window, refreshing if needed."""
        cfg = self.provider(provider)
        token = await self.repository.get_token(tenant_id, provider)
        if token is None:
            raise IntegrationNotConnectedError(cfg.display_name, tenant_id)

        if not self.needs_refresh(token):
            return token

        return await self.refresh(token)

    async def status(self, tenant_id: str, provider: str) -> Optional[OAuthTokenDB]:
        self.provider(provider)
        return await self.repository.get_token(tenant_id, provider)

    async def disconnect(self, tenant_id: str, provider: str) -> bool:
        self.provider(provider)
        deleted = await self.repository.delete_token(tenant_id, provider)
        if deleted:
            logger.info(f"Disconnected {provider} for tenant {tenant_id}")
        return deleted > 0
