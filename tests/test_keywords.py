"""
Tests for transcript keyword extraction and keyword counters
"""

import pytest

from call_relay.services.keywords import KeywordService, extract_keywords


class TestExtractKeywords:

    def test_keeps_repeated_content_words(self):
        transcript = (
            "I need a cleaning appointment. Is the cleaning covered by insurance? "
            "My insurance is Delta. Appointment on Friday please."
        )

        assert extract_keywords(transcript) == ["cleaning", "appointment", "insurance"]

    def test_drops_stop_words_numerals_and_short_words(self):
        transcript = "yeah yeah yeah 2025 2025 tooth tooth gum gum would would"

        assert extract_keywords(transcript) == ["tooth"]

    def test_caps_at_twenty(self):
        words = [f"word{chr(97 + i // 26)}{chr(97 + i % 26)}" for i in range(30)]
        transcript = " ".join(words * 2)

        assert len(extract_keywords(transcript)) == 20

    def test_empty_transcript(self):
        assert extract_keywords("") == []
        assert extract_keywords(None) == []


class TestKeywordService:

    @pytest.mark.asyncio
    async def test_running_average_and_counters(self, repository):
        service = KeywordService(repository)

        await service.record("tenant_a", ["billing"], "Positive")
        await service.record("tenant_a", ["billing"], "Negative")
        await service.record("tenant_a", ["billing"], "Negative")

        keyword = await repository.get_keyword("tenant_a", "billing")
        assert keyword.count == 3
        assert keyword.positive_count == 1
        assert keyword.negative_count == 2
        assert keyword.avg_sentiment == pytest.approx(-1 / 3)

    @pytest.mark.asyncio
    async def test_unknown_sentiment_counts_as_neutral(self, repository):
        service = KeywordService(repository)

        stored = await service.record("tenant_a", ["refund", "warranty"], None)

        assert stored == 2
        keyword = await repository.get_keyword("tenant_a", "refund")
        assert keyword.neutral_count == 1
        assert keyword.avg_sentiment == 0

    @pytest.mark.asyncio
    async def test_counters_are_per_tenant(self, repository):
        service = KeywordService(repository)

        await service.record("tenant_a", ["billing"], "Positive")
        await service.record("tenant_b", ["billing"], "Negative")

        assert (await repository.get_keyword("tenant_a", "billing")).avg_sentiment == 1
        assert (await repository.get_keyword("tenant_b", "billing")).avg_sentiment == -1
