"""
Transcript keyword extraction and per-tenant keyword counters
"""

import re
import uuid
from collections import Counter
from typing import List, Optional

from call_relay.core.logging import get_logger
from call_relay.db.models import KeywordDB, now_ts
from call_relay.db.repository import CallRelayRepository
from call_relay.models.analysis import SENTIMENT_SCORES, Sentiment

logger = get_logger(__name__)

MIN_LENGTH = 4
MIN_OCCURRENCES = 2
MAX_KEYWORDS = 20

STOP_WORDS = frozenset("""
i me my myself we our ours ourselves you your yours yourself yourselves he him
his himself she her hers herself it its itself they them their theirs themselves
what which who whom this that these those am is are was were be been being have
has had having do does did doing a an the and but if or because as until while
of at by for with about against between into through during before after above
below to from up down in out on off over under again further then once here
there when where why how all both each few more most other some such no nor not
only own same so than too very s t can will just don should now yeah yes okay ok
um uh like know think get got would could want need see go going come let one
two make
""".split())

_PUNCTUATION = re.compile(r"[^\w\s]")
_NUMERAL = re.compile(r"^\d+$")


def extract_keywords(transcript: Optional[str]) -> List[str]:
    """
    Frequent content words of a transcript.

    Lowercases, turns punctuation into spaces, drops stop-words, numerals
    and words shorter than 4 characters, then keeps words seen at least
    twice, most frequent first, at most 20.
    """
    if not transcript or not transcript.strip():
        return []

    words = _PUNCTUATION.sub(" ", transcript.lower()).split()
    counts = Counter(
        word for word in words
        if len(word) >= MIN_LENGTH and word not in STOP_WORDS and not _NUMERAL.match(word)
    )
    # Counter.most_common keeps first-seen order among equal counts
    return [word for word, count in counts.most_common() if count >= MIN_OCCURRENCES][:MAX_KEYWORDS]


class KeywordService:
    """Maintains running keyword counts and average sentiment per tenant."""

    def __init__(self, repository: CallRelayRepository):
        self.repository = repository

    async def record(self, tenant_id: str, keywords: List[str], sentiment: Optional[str]) -> int:
        if not keywords:
            return 0

        sentiment = sentiment if sentiment in SENTIMENT_SCORES else Sentiment.NEUTRAL.value
        score = SENTIMENT_SCORES[sentiment]
        timestamp = now_ts()

        stored = 0
        for word in keywords:
            try:
                existing = await self.repository.get_keyword(tenant_id, word)
                if existing:
                    total = existing.count + 1
                    existing.avg_sentiment = (existing.avg_sentiment * existing.count + score) / total
                    existing.count = total
                    self._bump(existing, sentiment)
                    existing.last_detected_at = timestamp
                    await self.repository.update_keyword_counts(existing)
                else:
                    keyword = KeywordDB(
                        id=f"kw_{uuid.uuid4().hex}",
                        tenant_id=tenant_id,
                        keyword=word,
                        count=1,
                        avg_sentiment=float(score),
                        last_detected_at=timestamp,
                    )
                    self._bump(keyword, sentiment)
                    await self.repository.insert_keyword(keyword)
                stored += 1
            except Exception as e:
                logger.error(f"Failed to store keyword '{word}' for tenant {tenant_id}: {e}")
        return stored

    @staticmethod
    def _bump(keyword: KeywordDB, sentiment: str) -> None:
        if sentiment == Sentiment.POSITIVE.value:
            keyword.positive_count += 1
        elif sentiment == Sentiment.NEGATIVE.value:
            keyword.negative_count += 1
        else:
            keyword.neutral_count += 1
