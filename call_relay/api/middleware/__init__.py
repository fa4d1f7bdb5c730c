"""API Middleware"""

from .auth import get_api_key, get_current_tenant_id

from .webhook_security import (
    SECRET_HEADER,
    OAuthStateSigner,
    verify_inbound_secret,
)

__all__ = [
    # Auth
    "get_api_key",
    "get_current_tenant_id",
    # Webhook security
    "SECRET_HEADER",
    "OAuthStateSigner",
    "verify_inbound_secret",
]
