import logging
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Protocol

from community_analytics.constants import Thresholds
from community_analytics.sentiment.schemas import (
    ContentSentiment,
    DailySentiment,
    SentimentDistribution,
    SentimentSummary,
    SentimentTrendSummary,
)


logger = logging.getLogger(__name__)


class ScoredContent(Protocol):
    content_id: str
    content_type: str
    sentiment_score: float
    sentiment_label: str
    confidence_score: float
    created_at: datetime


def _utc_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date().isoformat()


class SentimentAggregator:
    """Builds distributional summaries from stored sentiment records."""

    def __init__(self, top_limit: int = 5):
        self.top_limit = top_limit

    def summarize(self, records: Sequence[ScoredContent]) -> SentimentSummary:
        """
        Summarize sentiment records.

        Args:
            records: Sentiment records of any order

        Returns:
            SentimentSummary: Zeroed summary when `records` is empty
        """
        if not records:
            return SentimentSummary()

        total = len(records)
        average = sum(r.sentiment_score for r in records) / total

        ranked = sorted(records, key=lambda r: r.sentiment_score, reverse=True)
        top_positive = ranked[: self.top_limit]
        top_negative = list(reversed(ranked[-self.top_limit :]))

        return SentimentSummary(
            total_analyses=total,
            average_sentiment=average,
            sentiment_distribution=self.distribution(records),
            sentiment_evolution=self.evolution(records),
            top_positive_content=[
                ContentSentiment.model_validate(r) for r in top_positive
            ],
            top_negative_content=[
                ContentSentiment.model_validate(r) for r in top_negative
            ],
        )

    @staticmethod
    def distribution(
        records: Sequence[ScoredContent],
    ) -> SentimentDistribution:
        counts = SentimentDistribution()
        for record in records:
            if record.sentiment_label == "positive":
                counts.positive += 1
            elif record.sentiment_label == "negative":
                counts.negative += 1
            elif record.sentiment_label == "neutral":
                counts.neutral += 1
        return counts

    @staticmethod
    def evolution(records: Sequence[ScoredContent]) -> list[DailySentiment]:
        daily: dict[str, list[float]] = defaultdict(list)
        for record in records:
            daily[_utc_date(record.created_at)].append(record.sentiment_score)

        return [
            DailySentiment(
                date=date,
                average_sentiment=sum(scores) / len(scores),
                count=len(scores),
            )
            for date, scores in sorted(daily.items())
        ]

    def trend_summary(
        self, records: Sequence[ScoredContent]
    ) -> SentimentTrendSummary:
        """Percentages, direction and mean confidence over `records`."""
        if not records:
            return SentimentTrendSummary()

        total = len(records)
        counts = self.distribution(records)
        average = sum(r.sentiment_score for r in records) / total

        if average > Thresholds.TREND_DIRECTION:
            direction = "rising"
        elif average < -Thresholds.TREND_DIRECTION:
            direction = "falling"
        else:
            direction = "stable"

        return SentimentTrendSummary(
            average_sentiment=average,
            positive_percentage=counts.positive / total * 100,
            negative_percentage=counts.negative / total * 100,
            neutral_percentage=counts.neutral / total * 100,
            trend_direction=direction,
            confidence_trend=sum(r.confidence_score for r in records) / total,
        )
