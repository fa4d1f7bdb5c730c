"""
LLM call analysis models
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Intent(str, Enum):
    SCHEDULING = "Scheduling"
    INFORMATION = "Information"
    COMPLAINT = "Complaint"
    PURCHASE = "Purchase"
    SUPPORT = "Support"
    UNKNOWN = "Unknown"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


SENTIMENT_SCORES = {
    Sentiment.POSITIVE.value: 1,
    Sentiment.NEUTRAL.value: 0,
    Sentiment.NEGATIVE.value: -1,
}


class CallAnalysis(BaseModel):
    """Structured output returned by the classification completion"""
    model_config = ConfigDict(extra="ignore")

    intent: str = Field(default=Intent.UNKNOWN.value)
    sentiment: str = Field(default=Sentiment.NEUTRAL.value)
    outcome: str = Field(default="Unknown")
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    appointment_type: Optional[str] = None
    appointment_notes: Optional[str] = None

    @field_validator("intent", "sentiment", "outcome", mode="before")
    @classmethod
    def _blank_to_default(cls, value, info):
        if value in (None, ""):
            return cls.model_fields[info.field_name].default
        return str(value)

    @field_validator(
        "customer_name", "customer_email", "appointment_date",
        "appointment_time", "appointment_type", "appointment_notes",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if value in (None, ""):
            return None
        return str(value)
