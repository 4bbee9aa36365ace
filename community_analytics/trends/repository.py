import logging
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.trends.models import (
    CommunityPrediction,
    CommunityTrend,
    MetricSample,
)
from community_analytics.trends.schemas import (
    MetricSampleCreate,
    MetricSampleRead,
    TrendAnalysis,
    TrendPrediction,
)
from community_analytics.utils import utcnow


logger = logging.getLogger(__name__)


def to_metric_read(row: MetricSample) -> MetricSampleRead:
    return MetricSampleRead(
        id=row.id,
        metric_name=row.metric_name,
        metric_value=row.metric_value,
        metric_type=row.metric_type,  # type: ignore[arg-type]
        time_period=row.time_period,
        geographic_scope=row.geographic_scope or {},
        demographic_scope=row.demographic_scope or {},
        calculated_at=row.calculated_at,
        metadata=row.meta or {},
    )


def to_prediction(row: CommunityPrediction) -> TrendPrediction:
    return TrendPrediction(
        id=row.id,
        prediction_type=row.prediction_type,  # type: ignore[arg-type]
        prediction_target=row.prediction_target,
        predicted_value=row.predicted_value,
        confidence_score=row.confidence_score,
        prediction_horizon=row.prediction_horizon,  # type: ignore[arg-type]
        prediction_date=row.prediction_date,
        actual_value=row.actual_value,
        accuracy_score=row.accuracy_score,
        model_version=row.model_version,
        metadata=row.meta or {},
    )


class TrendRepository:
    """Repository for metric samples, trends and predictions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_metric_sample(self, sample: MetricSampleCreate) -> MetricSample:
        """
        Append a metric observation.

        Args:
            sample: Observation to store; calculated_at defaults to now

        Returns:
            MetricSample: Created row
        """
        row = MetricSample(
            metric_name=sample.metric_name,
            metric_value=sample.metric_value,
            metric_type=sample.metric_type,
            time_period=sample.time_period,
            geographic_scope=sample.geographic_scope,
            demographic_scope=sample.demographic_scope,
            calculated_at=sample.calculated_at or utcnow(),
            meta=sample.metadata,
        )

        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)

        logger.info(
            "Stored metric sample %s=%s (%s)",
            row.metric_name,
            row.metric_value,
            row.time_period,
        )

        return row

    async def get_metric_samples(
        self,
        metric_names: Optional[Sequence[str]] = None,
        time_period: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        ascending: bool = False,
        limit: Optional[int] = None,
    ) -> list[MetricSample]:
        """
        Get metric samples with optional filters.

        Args:
            metric_names: Restrict to these metric names
            time_period: Filter by time period
            start: Inclusive lower bound on calculated_at
            end: Inclusive upper bound on calculated_at
            ascending: Oldest first instead of newest first
            limit: Maximum number of samples to return

        Returns:
            list[MetricSample]: Matching samples
        """
        order = asc if ascending else desc
        query = select(MetricSample).order_by(
            order(MetricSample.calculated_at)  # type: ignore[arg-type]
        )

        if metric_names:
            query = query.where(
                MetricSample.metric_name.in_(metric_names)  # type: ignore[attr-defined]
            )

        if time_period:
            query = query.where(
                MetricSample.time_period == time_period  # type: ignore[arg-type]
            )

        if start is not None:
            query = query.where(
                MetricSample.calculated_at >= start  # type: ignore[arg-type]
            )

        if end is not None:
            query = query.where(
                MetricSample.calculated_at <= end  # type: ignore[arg-type]
            )

        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def save_predictions(
        self, predictions: Sequence[TrendPrediction]
    ) -> list[CommunityPrediction]:
        """Persist forecasts in one commit."""
        rows = [
            CommunityPrediction(
                prediction_type=p.prediction_type,
                prediction_target=p.prediction_target,
                predicted_value=p.predicted_value,
                confidence_score=p.confidence_score,
                prediction_horizon=p.prediction_horizon,
                prediction_date=p.prediction_date,
                model_version=p.model_version,
                meta=p.metadata,
            )
            for p in predictions
        ]

        self.session.add_all(rows)
        await self.session.commit()
        for row in rows:
            await self.session.refresh(row)

        logger.info("Stored %s predictions", len(rows))

        return rows

    async def save_trends(
        self, trends: Sequence[TrendAnalysis]
    ) -> list[CommunityTrend]:
        """Persist trend classifications in one commit."""
        rows = [
            CommunityTrend(
                trend_type=t.trend_type,
                trend_name=t.trend_name,
                trend_description=t.trend_description,
                trend_score=t.trend_score,
                trend_direction=t.trend_direction,
                confidence_level=t.confidence_level,
                geographic_scope=t.geographic_scope,
                time_period_start=t.time_period_start,
                time_period_end=t.time_period_end,
                meta=t.metadata,
            )
            for t in trends
        ]

        self.session.add_all(rows)
        await self.session.commit()

        logger.info("Stored %s trend analyses", len(rows))

        return rows

    async def get_prediction(
        self, prediction_id: uuid.UUID
    ) -> Optional[CommunityPrediction]:
        return await self.session.get(CommunityPrediction, prediction_id)

    async def update_prediction_actual(
        self,
        prediction: CommunityPrediction,
        actual_value: float,
        accuracy_score: float,
    ) -> CommunityPrediction:
        """
        Record the observed value for a stored forecast.

        Args:
            prediction: Stored forecast
            actual_value: Observed value
            accuracy_score: Accuracy of the forecast against the observation

        Returns:
            CommunityPrediction: Updated row
        """
        prediction.actual_value = actual_value
        prediction.accuracy_score = accuracy_score

        self.session.add(prediction)
        await self.session.commit()
        await self.session.refresh(prediction)

        logger.info(
            "Reconciled prediction %s: actual=%s, accuracy=%.3f",
            prediction.id,
            actual_value,
            accuracy_score,
        )

        return prediction
