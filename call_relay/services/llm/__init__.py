"""LLM services"""

from .openai_service import OpenAIService

__all__ = ["OpenAIService"]
