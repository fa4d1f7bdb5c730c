"""
OpenAI LLM Service
Classifies finished calls into intent, sentiment, outcome and appointment fields
"""

import json
from typing import Optional

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError as PydanticValidationError

from call_relay.core.exceptions import OpenAIServiceError
from call_relay.core.logging import get_logger
from call_relay.models.analysis import CallAnalysis

logger = get_logger(__name__)

ANALYSIS_SYSTEM_PROMPT = """You are an AI that analyzes customer service call recordings. Analyze the call and respond with a JSON object containing:

REQUIRED FIELDS:
- intent: The customer's primary intent (e.g., "Scheduling", "Information", "Complaint", "Purchase", "Support")
- sentiment: The overall sentiment of the call ("Positive", "Neutral", or "Negative")
- outcome: The call outcome ("Successful", "Unsuccessful", "Follow-up Required", "Abandoned")

OPTIONAL FIELDS (extract if mentioned in the call):
- customer_name: The customer's full name (if mentioned)
- customer_email: The customer's email address (if mentioned)

APPOINTMENT FIELDS (ONLY if intent is "Scheduling" and appointment was successfully booked):
- appointment_date: The appointment date in ISO format (YYYY-MM-DD). Resolve relative phrases like "tomorrow" or "next Monday".
- appointment_time: The appointment time in 12-hour format (e.g., "2:00 PM", "10:30 AM")
- appointment_type: Type of appointment (e.g., "Consultation", "Service Call", "Follow-up", "Installation")
- appointment_notes: Any special notes about the appointment (e.g., "Bring ID", "Gate code: 1234")

Only include appointment fields if an appointment was ACTUALLY SCHEDULED. If the customer only asked about scheduling, leave them out.

Only respond with the JSON object, no additional text."""


class OpenAIService:
    """Service for interacting with OpenAI API using a tenant-supplied key"""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def analyze_call(self, summary: str, transcript: str) -> CallAnalysis:
        """
        Run one structured-output completion over a call

        Args:
            summary: Platform-generated call summary
            transcript: Full call transcript

        Returns:
            Validated CallAnalysis

        Raises:
            OpenAIServiceError: on API failure or an unparseable response
        """
        logger.debug(f"Analyzing call ({len(transcript)} transcript chars)")

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": f"Call Summary: {summary}\n\nFull Transcript:\n{transcript}",
                    },
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {str(e)}")
            raise OpenAIServiceError(f"API error: {str(e)}")

        content = response.choices[0].message.content or "{}"
        try:
            return CallAnalysis.model_validate(json.loads(content))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise OpenAIServiceError("Unparseable analysis response", {"error": str(e)})
