"""
Custom Exceptions for Call Relay
Provides structured error handling across the application
"""

from typing import Optional, Dict, Any


class CallRelayException(Exception):
    """Base exception for all call relay errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


# Authentication Exceptions
class AuthenticationError(CallRelayException):
    """Raised when authentication fails"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            error_code="AUTH_FAILED",
            details=details,
            status_code=401
        )


class InvalidAPIKeyError(AuthenticationError):
    """Raised when API key is invalid"""

    def __init__(self, message: str = "Invalid or inactive API key"):
        super().__init__(message=message, details={"hint": "Check your API key"})


class TenantNotFoundError(CallRelayException):
    """Raised when tenant is not found"""

    def __init__(self, tenant_id: str):
        super().__init__(
            message=f"Tenant not found: {tenant_id}",
            error_code="TENANT_NOT_FOUND",
            details={"tenant_id": tenant_id},
            status_code=404
        )


# Resource Exceptions
class NotFoundError(CallRelayException):
    """Raised when a tenant-scoped resource does not exist"""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            error_code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
            status_code=404
        )


class InboundWebhookNotFoundError(CallRelayException):
    """Raised when an inbound webhook id is unknown or inactive"""

    def __init__(self, webhook_id: str):
        super().__init__(
            message="Webhook not found or inactive",
            error_code="WEBHOOK_NOT_FOUND",
            details={"webhook_id": webhook_id},
            status_code=404
        )


class ValidationError(CallRelayException):
    """Raised when request validation fails"""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=error_details,
            status_code=400
        )


class IngestionError(CallRelayException):
    """Raised when an inbound event payload cannot be accepted"""

    def __init__(self, message: str = "Invalid JSON payload", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            error_code="INVALID_PAYLOAD",
            details=details,
            status_code=400
        )


class StorageError(CallRelayException):
    """Raised when the synchronous persistence step fails"""

    def __init__(self, message: str = "Failed to store call data", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            details=details,
            status_code=500
        )


# Webhook Security
class WebhookValidationError(CallRelayException):
    """Raised when inbound webhook authentication fails"""

    def __init__(self, message: str = "Invalid webhook secret"):
        super().__init__(
            message=message,
            error_code="WEBHOOK_VALIDATION_FAILED",
            status_code=401
        )


class OAuthStateError(CallRelayException):
    """Raised when an OAuth callback carries an unsigned or tampered state"""

    def __init__(self, message: str = "Invalid OAuth state"):
        super().__init__(
            message=message,
            error_code="INVALID_OAUTH_STATE",
            status_code=400
        )


# Integration Exceptions
class UnsupportedProviderError(CallRelayException):
    """Raised when a CRM provider name is not recognised"""

    def __init__(self, provider: str):
        super().__init__(
            message=f"Unsupported provider: {provider}",
            error_code="UNSUPPORTED_PROVIDER",
            details={"provider": provider},
            status_code=404
        )


class IntegrationNotConnectedError(CallRelayException):
    """Raised when a tenant has no usable token on file for a provider"""

    def __init__(self, provider: str, tenant_id: Optional[str] = None):
        super().__init__(
            message=f"{provider} not connected",
            error_code="INTEGRATION_NOT_CONNECTED",
            details={"provider": provider, "tenant_id": tenant_id},
            status_code=409
        )


class ServiceError(CallRelayException):
    """Raised when an external service call fails"""

    def __init__(
        self,
        service: str,
        message: str,
        error_code: str = "SERVICE_ERROR",
        details: Optional[Dict] = None
    ):
        error_details = details or {}
        error_details["service"] = service
        super().__init__(
            message=message,
            error_code=error_code,
            details=error_details,
            status_code=502
        )


class TokenExchangeError(ServiceError):
    """Raised when an authorization code cannot be exchanged"""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(
            service=provider,
            message=message,
            error_code="TOKEN_EXCHANGE_FAILED",
            details={"http_status": status} if status else None
        )


class TokenRefreshError(ServiceError):
    """Raised when a provider rejects a refresh_token grant"""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(
            service=provider,
            message=message,
            error_code="TOKEN_REFRESH_FAILED",
            details={"http_status": status} if status else None
        )


class CRMServiceError(ServiceError):
    """Raised when a CRM REST call fails"""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(
            service=provider,
            message=message,
            error_code="CRM_ERROR",
            details={"http_status": status} if status else None
        )


class OpenAIServiceError(ServiceError):
    """Raised when OpenAI API fails"""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            service="OpenAI",
            message=message,
            error_code="OPENAI_ERROR",
            details=details
        )
