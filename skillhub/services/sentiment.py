from collections.abc import Iterable
from datetime import datetime, timezone

from skillhub.core.constants import (
    CONFIDENCE_SATURATION_WORDS,
    NEGATIVE_KEYWORDS,
    NEUTRAL_CONFIDENCE,
    POSITIVE_KEYWORDS,
)
from skillhub.models.metrics import ContentType, SentimentRecord


class SentimentAnalyzer:
    """
    Deterministic keyword sentiment heuristic.

    Text is split on whitespace and lower-cased; each token is checked against the
    positive list first, then the negative list. No stemming and no punctuation
    stripping, so "rates." never matches "rates".
    """

    def __init__(
        self,
        positive_keywords: Iterable[str] = POSITIVE_KEYWORDS,
        negative_keywords: Iterable[str] = NEGATIVE_KEYWORDS,
        saturation_words: int = CONFIDENCE_SATURATION_WORDS,
    ):
        self.positive_keywords = frozenset(word.lower() for word in positive_keywords)
        self.negative_keywords = frozenset(word.lower() for word in negative_keywords)
        self.saturation_words = saturation_words

    def analyze(
        self,
        text: str,
        profile_id: str = "",
        content_type: ContentType = "bio",
        analyzed_at: datetime | None = None,
    ) -> SentimentRecord:
        positive_count = 0
        negative_count = 0
        matched: list[str] = []

        for word in (text or "").lower().split():
            if word in self.positive_keywords:
                positive_count += 1
            elif word in self.negative_keywords:
                negative_count += 1
            else:
                continue
            if word not in matched:
                matched.append(word)

        total = positive_count + negative_count
        if total == 0:
            score = 0.0
            confidence = NEUTRAL_CONFIDENCE
        else:
            score = (positive_count - negative_count) / total
            confidence = min(total / self.saturation_words, 1.0)

        return SentimentRecord(
            profile_id=profile_id,
            content_type=content_type,
            content=text or "",
            sentiment_score=score,
            confidence=confidence,
            matched_keywords=matched,
            analyzed_at=analyzed_at or datetime.now(timezone.utc),
        )
