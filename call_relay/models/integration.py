"""
Models for CRM integration endpoints
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


class CRMProvider(str, Enum):
    """Supported CRM connectors"""
    SALESFORCE = "salesforce"
    HUBSPOT = "hubspot"
    DYNAMICS = "dynamics"


class SyncStatus(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class InitiateResponse(BaseModel):
    url: str = Field(..., description="Provider authorization URL to redirect the user to")


class IntegrationStatus(BaseModel):
    provider: CRMProvider
    connected: bool
    instance_url: Optional[str] = None
    expires_at: Optional[int] = None
    connected_at: Optional[int] = None


class SyncLogEntry(BaseModel):
    id: str
    call_id: str
    phone_number: Optional[str] = None
    record_id: Optional[str] = None
    activity_id: Optional[str] = None
    appointment_id: Optional[str] = None
    record_created: bool = False
    status: SyncStatus
    error_message: Optional[str] = None
    created_at: int


class SyncLogPage(BaseModel):
    logs: List[SyncLogEntry]
    total: int
    limit: int
    offset: int
