"""
Models for outbound webhooks, scheduling triggers and inbound webhook registration
"""

from enum import Enum
from typing import Optional, List
from urllib.parse import urlparse
from pydantic import BaseModel, Field, field_validator


class OutboundEvent(str, Enum):
    """Events a destination can subscribe to"""
    CALL_STARTED = "call.started"
    CALL_ENDED = "call.ended"


VALID_EVENTS = {e.value for e in OutboundEvent}


def _validate_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid destination URL")
    return value


def _validate_events(value: List[str]) -> List[str]:
    events = [e.strip() for e in value if e and e.strip()]
    if not events:
        raise ValueError("At least one event must be selected")
    invalid = [e for e in events if e not in VALID_EVENTS]
    if invalid:
        raise ValueError(f"Invalid events: {', '.join(invalid)}")
    return sorted(set(events))


class OutboundWebhookCreate(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "name": "Zapier",
                "destination_url": "https://hooks.zapier.com/hooks/catch/123/abc",
                "events": ["call.ended"],
            }
        }
    }

    name: str = Field(..., min_length=1)
    destination_url: str
    events: List[str] = Field(default_factory=lambda: [OutboundEvent.CALL_ENDED.value])

    @field_validator("destination_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _validate_url(value)

    @field_validator("events")
    @classmethod
    def _check_events(cls, value: List[str]) -> List[str]:
        return _validate_events(value)


class OutboundWebhookUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    destination_url: Optional[str] = None
    events: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator("destination_url")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        return _validate_url(value) if value is not None else value

    @field_validator("events")
    @classmethod
    def _check_events(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _validate_events(value) if value is not None else value


class OutboundWebhookResponse(BaseModel):
    id: str
    name: str
    destination_url: str
    events: List[str]
    is_active: bool
    created_at: int
    updated_at: int


class SchedulingTriggerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    destination_url: str
    send_enhanced_data: bool = False

    @field_validator("destination_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _validate_url(value)


class InboundWebhookCreate(BaseModel):
    name: str = Field(..., min_length=1)
    secret: Optional[str] = Field(default=None, description="Shared secret expected in X-Vapi-Secret")


class TenantSettingsUpdate(BaseModel):
    openai_api_key: Optional[str] = None
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None


class AddonToggle(BaseModel):
    addon_type: str = Field(default="enhanced_data")
    enabled: bool = True
