"""
Inbound voice platform event models

Validates the `{ "message": {...} }` envelope posted by the voice platform.
Unknown keys are preserved so the raw payload can be stored verbatim.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator


class MessageType(str, Enum):
    """Event kinds handled by the ingress"""
    STATUS_UPDATE = "status-update"
    END_OF_CALL_REPORT = "end-of-call-report"


class CallStatus(str, Enum):
    """Live call states carried by status-update events"""
    QUEUED = "queued"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    FORWARDING = "forwarding"
    ENDED = "ended"


ACTIVE_STATUSES = {CallStatus.RINGING.value, CallStatus.IN_PROGRESS.value, CallStatus.FORWARDING.value}


class _PlatformModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


def _utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


class Customer(_PlatformModel):
    number: Optional[str] = None
    name: Optional[str] = None


class PhoneNumber(_PlatformModel):
    number: Optional[str] = None


class Assistant(_PlatformModel):
    name: Optional[str] = None


class CallInfo(_PlatformModel):
    id: Optional[str] = None
    customer: Optional[Customer] = None
    phone_number: Optional[PhoneNumber] = Field(default=None, alias="phoneNumber")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")
    ended_reason: Optional[str] = Field(default=None, alias="endedReason")
    duration: Optional[float] = None


class ArtifactMessage(_PlatformModel):
    role: Optional[str] = None
    message: Optional[str] = None


class Artifact(_PlatformModel):
    transcript: Optional[str] = None
    recording_url: Optional[str] = Field(default=None, alias="recordingUrl")
    messages: List[ArtifactMessage] = Field(default_factory=list)

    @field_validator("messages", mode="before")
    @classmethod
    def _null_messages(cls, value: Any) -> Any:
        return [] if value is None else value


class StructuredOutput(_PlatformModel):
    """A named structured-output result extracted by the voice platform"""
    name: Optional[str] = None
    result: Any = None


class Analysis(_PlatformModel):
    summary: Optional[str] = None
    structured_data: Dict[str, Any] = Field(default_factory=dict, alias="structuredData")
    structured_outputs: Dict[str, StructuredOutput] = Field(default_factory=dict, alias="structuredOutputs")

    @field_validator("structured_data", "structured_outputs", mode="before")
    @classmethod
    def _null_mappings(cls, value: Any) -> Any:
        return {} if value is None else value


class EventMessage(_PlatformModel):
    """The `message` object of an inbound event"""
    type: str = MessageType.END_OF_CALL_REPORT.value
    status: Optional[str] = None
    call: CallInfo = Field(default_factory=CallInfo)
    customer: Optional[Customer] = None
    phone_number: Optional[PhoneNumber] = Field(default=None, alias="phoneNumber")
    assistant: Optional[Assistant] = None
    artifact: Artifact = Field(default_factory=Artifact)
    analysis: Analysis = Field(default_factory=Analysis)
    summary: Optional[str] = None
    recording_url: Optional[str] = Field(default=None, alias="recordingUrl")
    ended_reason: Optional[str] = Field(default=None, alias="endedReason")
    duration_seconds: Optional[float] = Field(default=None, alias="durationSeconds")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")

    # The platform sends null for sections it did not produce
    @field_validator("call", "artifact", "analysis", mode="before")
    @classmethod
    def _null_sections(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def customer_number(self) -> Optional[str]:
        for customer in (self.customer, self.call.customer):
            if customer and customer.number:
                return customer.number
        return None

    @property
    def agent_number(self) -> Optional[str]:
        for phone in (self.phone_number, self.call.phone_number):
            if phone and phone.number:
                return phone.number
        return None

    @property
    def provider_call_id(self) -> Optional[str]:
        return self.call.id

    @property
    def assistant_name(self) -> Optional[str]:
        return self.assistant.name if self.assistant else None

    def resolved_recording_url(self) -> Optional[str]:
        return self.recording_url or self.artifact.recording_url

    def resolved_ended_reason(self) -> str:
        return self.ended_reason or self.call.ended_reason or "unknown"

    def resolved_summary(self) -> str:
        return self.analysis.summary or self.summary or ""

    def structured_fields(self) -> Dict[str, Any]:
        """structuredData merged with named structuredOutputs results."""
        fields = dict(self.analysis.structured_data)
        for output in self.analysis.structured_outputs.values():
            if output.name and output.name not in fields and isinstance(output.result, (str, int, float, bool, dict, list)):
                fields[output.name] = output.result
        return fields

    def resolved_duration(self) -> Optional[int]:
        """Explicit duration first, then message timestamps, then call timestamps."""
        for explicit in (self.duration_seconds, self.call.duration):
            if explicit is not None:
                return int(explicit)
        for started, ended in (
            (self.started_at, self.ended_at),
            (self.call.started_at, self.call.ended_at),
        ):
            if started and ended:
                return int((_utc(ended) - _utc(started)).total_seconds())
        return None

    def conversation(self) -> List[Dict[str, str]]:
        """User/assistant turns with `bot` normalized to `assistant`."""
        turns = []
        for item in self.artifact.messages:
            if item.role not in ("user", "bot", "assistant"):
                continue
            turns.append({
                "role": "assistant" if item.role == "bot" else item.role,
                "message": item.message or "",
            })
        return turns


class InboundEvent(_PlatformModel):
    """Top-level inbound event envelope"""
    message: EventMessage
