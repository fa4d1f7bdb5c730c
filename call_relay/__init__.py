"""Call Relay - voice AI call event ingestion and fan-out"""

__version__ = "1.0.0"
