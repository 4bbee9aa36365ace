import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.config import settings
from community_analytics.exceptions import PersistenceError
from community_analytics.sentiment.aggregator import SentimentAggregator
from community_analytics.sentiment.models import SentimentRecord
from community_analytics.sentiment.repository import SentimentRepository
from community_analytics.sentiment.schemas import (
    SentimentAnalysisOptions,
    SentimentResult,
    SentimentSummary,
    SentimentTrendSummary,
)
from community_analytics.sentiment.scorer import LexiconSentimentScorer
from community_analytics.utils import period_start, utcnow


logger = logging.getLogger(__name__)


class SentimentAnalysisService:
    """Scores community content and summarizes stored sentiment."""

    def __init__(
        self,
        repository: SentimentRepository,
        scorer: Optional[LexiconSentimentScorer] = None,
        aggregator: Optional[SentimentAggregator] = None,
    ):
        self.repository = repository
        self.scorer = scorer or LexiconSentimentScorer()
        self.aggregator = aggregator or SentimentAggregator()

    def analyze(self, text: str) -> SentimentResult:
        """Score a text without storing anything."""
        return self.scorer.score(text)

    async def store_sentiment_analysis(
        self, options: SentimentAnalysisOptions
    ) -> SentimentRecord:
        """
        Score content and append the result to the sentiment log.

        Args:
            options: Content to analyze

        Returns:
            SentimentRecord: Stored record
        """
        result = self.analyze(options.content_text)
        try:
            return await self.repository.create_record(
                options, result, analyzed_at=utcnow()
            )
        except SQLAlchemyError as e:
            logger.error("Failed to store sentiment analysis: %s", e)
            raise PersistenceError(
                f"Failed to store sentiment analysis: {e}"
            ) from e

    async def get_records(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        content_type: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> list[SentimentRecord]:
        try:
            return await self.repository.get_records(
                start=start,
                end=end,
                content_type=content_type,
                ascending=ascending,
                limit=limit,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to load sentiment records: %s", e)
            raise PersistenceError(
                f"Failed to load sentiment records: {e}"
            ) from e

    async def get_sentiment_trends(
        self,
        start: datetime,
        end: datetime,
        content_type: Optional[str] = None,
    ) -> SentimentTrendSummary:
        """
        Percentage breakdown of sentiment between `start` and `end`.

        Args:
            start: Window start
            end: Window end
            content_type: Optional content type filter

        Returns:
            SentimentTrendSummary: Zeroed summary when the window is empty
        """
        records = await self.get_records(start, end, content_type)
        return self.aggregator.trend_summary(records)

    async def get_community_sentiment_summary(
        self, time_period: str = "week"
    ) -> SentimentSummary:
        """
        Summarize sentiment for the window ending now.

        Args:
            time_period: "day", "week", "month", "quarter" or "year"

        Returns:
            SentimentSummary: Distribution, daily evolution and extremes
        """
        end = utcnow()
        start = period_start(time_period, end)
        records = await self.get_records(start, end)

        logger.debug(
            "Summarizing %s sentiment records for period=%s",
            len(records),
            time_period,
        )

        return self.aggregator.summarize(records)


# Factory function to create service with session
async def get_sentiment_service(
    session: AsyncSession,
) -> SentimentAnalysisService:
    """Get sentiment service bound to a database session."""
    return SentimentAnalysisService(
        SentimentRepository(session),
        aggregator=SentimentAggregator(top_limit=settings.TOP_CONTENT_LIMIT),
    )
