"""Core module for configuration, settings, and shared utilities"""

from .config import settings, get_settings, Settings
from .logging import setup_logging, get_logger
from .exceptions import (
    CallRelayException,
    AuthenticationError,
    InvalidAPIKeyError,
    TenantNotFoundError,
    NotFoundError,
    InboundWebhookNotFoundError,
    ValidationError,
    IngestionError,
    StorageError,
    WebhookValidationError,
    OAuthStateError,
    UnsupportedProviderError,
    IntegrationNotConnectedError,
    ServiceError,
    TokenExchangeError,
    TokenRefreshError,
    CRMServiceError,
    OpenAIServiceError,
)

__all__ = [
    # Config
    "settings",
    "get_settings",
    "Settings",
    # Logging
    "setup_logging",
    "get_logger",
    # Exceptions
    "CallRelayException",
    "AuthenticationError",
    "InvalidAPIKeyError",
    "TenantNotFoundError",
    "NotFoundError",
    "InboundWebhookNotFoundError",
    "ValidationError",
    "IngestionError",
    "StorageError",
    "WebhookValidationError",
    "OAuthStateError",
    "UnsupportedProviderError",
    "IntegrationNotConnectedError",
    "ServiceError",
    "TokenExchangeError",
    "TokenRefreshError",
    "CRMServiceError",
    "OpenAIServiceError",
]
