"""
Appointment date/time helpers shared by the CRM connectors and enrichment
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from dateutil import parser

from call_relay.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_APPOINTMENT_MINUTES = 60


def parse_appointment(date: Optional[str], time: Optional[str]) -> Optional[datetime]:
    """
    Combine an appointment date ("2025-01-15", "January 15, 2025") and
    time ("2:00 PM", "14:00") into a datetime. Returns None when either part
    is missing or unparseable.
    """
    if not date or not time:
        return None
    try:
        day = parser.parse(date).date()
        clock = parser.parse(time).time()
    except (ValueError, OverflowError) as e:
        logger.warning(f"Could not parse appointment '{date} {time}': {e}")
        return None
    return datetime.combine(day, clock)


def appointment_epoch(date: Optional[str], time: Optional[str]) -> Optional[int]:
    start = parse_appointment(date, time)
    return int(start.timestamp()) if start else None


def appointment_window(
    date: Optional[str], time: Optional[str], minutes: int = DEFAULT_APPOINTMENT_MINUTES
) -> Optional[Dict[str, datetime]]:
    start = parse_appointment(date, time)
    if start is None:
        return None
    return {
        "start": start,
        "end": start + timedelta(minutes=minutes),
        "reminder": start - timedelta(hours=1),
    }


def humanize_key(key: str) -> str:
    """camelCase / snake_case to Title Case"""
    spaced = "".join(f" {c}" if c.isupper() else c for c in key).replace("_", " ")
    return " ".join(word.capitalize() for word in spaced.split())


def format_call_details(structured_data: Dict[str, Any]) -> str:
    """Render structured fields as a bulleted list, skipping empty values."""
    lines = []
    for key, value in structured_data.items():
        if value is None or value == "":
            continue
        lines.append(f"- **{humanize_key(key)}:** {value}")
    return "\n".join(lines)
