import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.sentiment.models import SentimentRecord
from community_analytics.sentiment.schemas import (
    SentimentAnalysisOptions,
    SentimentResult,
)


logger = logging.getLogger(__name__)


class SentimentRepository:
    """Repository for sentiment record database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_record(
        self,
        options: SentimentAnalysisOptions,
        result: SentimentResult,
        analyzed_at: datetime,
    ) -> SentimentRecord:
        """
        Append a scored content record.

        Args:
            options: Content that was analyzed
            result: Lexicon score for the content
            analyzed_at: Time of analysis, stored in the metadata

        Returns:
            SentimentRecord: Created record
        """
        record = SentimentRecord(
            content_id=options.content_id,
            content_type=options.content_type,
            sentiment_score=result.sentiment_score,
            sentiment_label=result.sentiment_label,
            confidence_score=result.confidence_score,
            analysis_metadata={
                "user_id": options.user_id,
                "location": (
                    options.location.model_dump() if options.location else None
                ),
                "text": options.content_text,
                "text_length": len(options.content_text),
                "analysis_timestamp": analyzed_at.isoformat(),
            },
        )

        self.session.add(record)
        await self.session.commit()
        await self.session.refresh(record)

        logger.info(
            "Created sentiment record for %s %s, score=%.3f, label=%s",
            record.content_type,
            record.content_id,
            record.sentiment_score,
            record.sentiment_label,
        )

        return record

    async def get_records(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        content_type: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
    ) -> list[SentimentRecord]:
        """
        Get sentiment records with optional filters.

        Args:
            start: Inclusive lower bound on created_at
            end: Inclusive upper bound on created_at
            content_type: Filter by content type
            ascending: Order by created_at ascending (oldest first)
            limit: Maximum number of records to return

        Returns:
            list[SentimentRecord]: Matching records
        """
        order = asc if ascending else desc
        query = select(SentimentRecord).order_by(
            order(SentimentRecord.created_at)  # type: ignore[arg-type]
        )

        if start is not None:
            query = query.where(
                SentimentRecord.created_at >= start  # type: ignore[arg-type]
            )

        if end is not None:
            query = query.where(
                SentimentRecord.created_at <= end  # type: ignore[arg-type]
            )

        if content_type:
            query = query.where(
                SentimentRecord.content_type == content_type  # type: ignore[arg-type]
            )

        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
