"""
Webhook Security
Shared-secret checks for inbound events and signed OAuth state
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Any, Dict, Optional

from call_relay.core.exceptions import OAuthStateError, WebhookValidationError
from call_relay.core.logging import get_logger
from call_relay.db.models import InboundWebhookDB

logger = get_logger(__name__)

SECRET_HEADER = "X-Vapi-Secret"
STATE_MAX_AGE_SECONDS = 600


def verify_inbound_secret(webhook: InboundWebhookDB, provided: Optional[str]) -> bool:
    """
    Validate the shared secret of an inbound webhook.

    Webhooks registered without a secret accept every request.
    Raises WebhookValidationError on a missing or wrong secret.
    """
    if not webhook.secret:
        return True

    if not provided:
        logger.warning(f"Missing {SECRET_HEADER} header for webhook {webhook.id}")
        raise WebhookValidationError(f"Missing {SECRET_HEADER} header")

    if not hmac.compare_digest(provided.encode("utf-8"), webhook.secret.encode("utf-8")):
        logger.warning(f"Invalid secret for webhook {webhook.id}")
        raise WebhookValidationError()

    return True


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


class OAuthStateSigner:
    """
    Signs the OAuth `state` parameter so the callback can trust the tenant
    (and Dynamics instance URL) it carries: `<payload>.<hmac-sha256>`.
    """

    def __init__(self, secret_key: str, max_age: int = STATE_MAX_AGE_SECONDS):
        self.secret_key = secret_key.encode("utf-8")
        self.max_age = max_age

    def _signature(self, payload: str) -> str:
        return hmac.new(self.secret_key, payload.encode("ascii"), hashlib.sha256).hexdigest()

    def sign(self, tenant_id: str, provider: str, instance_url: Optional[str] = None) -> str:
        payload = _b64encode(json.dumps({
            "tenant_id": tenant_id,
            "provider": provider,
            "instance_url": instance_url,
            "nonce": secrets.token_urlsafe(8),
            "issued_at": int(time.time()),
        }, separators=(",", ":")).encode("utf-8"))
        return f"{payload}.{self._signature(payload)}"

    def verify(self, state: Optional[str], provider: str) -> Dict[str, Any]:
        if not state or "." not in state:
            raise OAuthStateError("Missing OAuth state")

        payload, signature = state.rsplit(".", 1)
        if not hmac.compare_digest(signature, self._signature(payload)):
            logger.warning(f"Tampered OAuth state for {provider}")
            raise OAuthStateError()

        try:
            data = json.loads(_b64decode(payload))
        except ValueError:
            raise OAuthStateError()

        if data.get("provider") != provider or not data.get("tenant_id"):
            raise OAuthStateError("OAuth state does not match provider")
        if int(time.time()) - int(data.get("issued_at", 0)) > self.max_age:
            raise OAuthStateError("OAuth state expired")
        return data
