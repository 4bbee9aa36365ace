import logging
import uuid
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.constants import TREND_DIMENSIONS
from community_analytics.exceptions import NotFoundError, PersistenceError
from community_analytics.sentiment.repository import SentimentRepository
from community_analytics.trends import statistics as stats
from community_analytics.trends.predictor import TrendPredictor
from community_analytics.trends.repository import (
    TrendRepository,
    to_metric_read,
    to_prediction,
)
from community_analytics.trends.schemas import (
    MetricSampleCreate,
    MetricSampleRead,
    PredictionHorizon,
    PredictionType,
    TrendAnalysis,
    TrendPrediction,
)
from community_analytics.utils import period_start, utcnow


logger = logging.getLogger(__name__)


def prediction_accuracy(predicted: float, actual: float) -> float:
    """One minus the relative error, floored at 0."""
    if actual == 0:
        return 1.0 if predicted == 0 else 0.0
    return max(0.0, 1 - abs(actual - predicted) / abs(actual))


class TrendPredictionService:
    """Classifies community trends and forecasts community metrics."""

    def __init__(
        self,
        repository: TrendRepository,
        sentiment_repository: SentimentRepository,
        predictor: Optional[TrendPredictor] = None,
    ):
        self.repository = repository
        self.sentiment_repository = sentiment_repository
        self.predictor = predictor or TrendPredictor()

    async def analyze_trends(
        self,
        time_period: str = "week",
        trend_types: Optional[Sequence[str]] = None,
    ) -> list[TrendAnalysis]:
        """
        Classify each requested trend dimension over the window ending now.

        Args:
            time_period: "day", "week", "month", "quarter" or "year"
            trend_types: Dimensions to analyze, all of them by default

        Returns:
            list[TrendAnalysis]: One entry per dimension that had data
        """
        end = utcnow()
        start = period_start(time_period, end)

        trends = []
        for trend_type in trend_types or TREND_DIMENSIONS:
            try:
                trend = await self.analyze_trend_type(trend_type, start, end)
            except SQLAlchemyError as e:
                logger.error("Failed to analyze %s trend: %s", trend_type, e)
                continue

            if trend is not None:
                trends.append(trend)

        if trends:
            try:
                await self.repository.save_trends(trends)
            except SQLAlchemyError as e:
                logger.error("Failed to store trends: %s", e)
                raise PersistenceError(f"Failed to store trends: {e}") from e

        return trends

    async def analyze_trend_type(
        self, trend_type: str, start: datetime, end: datetime
    ) -> Optional[TrendAnalysis]:
        values = await self.get_trend_series(trend_type, start, end)
        if not values:
            return None

        score = stats.trend_score(values)

        return TrendAnalysis(
            trend_type=trend_type,  # type: ignore[arg-type]
            trend_name=f"{trend_type}_trend",
            trend_description=f"Analysis of {trend_type} trends in the community",
            trend_score=score,
            trend_direction=stats.trend_direction(score),  # type: ignore[arg-type]
            confidence_level=stats.r_squared(values, stats.ols_slope(values)),
            time_period_start=start,
            time_period_end=end,
            metadata={
                "data_points": len(values),
                "analysis_timestamp": utcnow().isoformat(),
            },
        )

    async def get_trend_series(
        self, trend_type: str, start: datetime, end: datetime
    ) -> list[float]:
        """Values of a trend dimension in the window, oldest first."""
        if trend_type == "sentiment":
            records = await self.sentiment_repository.get_records(
                start=start, end=end
            )
            return [r.sentiment_score for r in records]

        if trend_type == "engagement":
            samples = await self.repository.get_metric_samples(
                metric_names=["engagement"], start=start, end=end, ascending=True
            )
            return [s.metric_value for s in samples]

        # No data source for topic, location and demographic trends yet
        return []

    async def generate_predictions(
        self,
        prediction_type: PredictionType,
        horizon: PredictionHorizon = "short",
    ) -> list[TrendPrediction]:
        """
        Forecast a metric from its last three months of samples.

        Args:
            prediction_type: Metric name to forecast
            horizon: Forecast horizon

        Returns:
            list[TrendPrediction]: Stored predictions, empty without data
        """
        end = utcnow()
        start = period_start("quarter", end)

        try:
            samples = await self.repository.get_metric_samples(
                metric_names=[prediction_type],
                start=start,
                end=end,
                ascending=True,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to load %s history: %s", prediction_type, e)
            raise PersistenceError(
                f"Failed to load {prediction_type} history: {e}"
            ) from e

        predictions = self.predictor.predict(samples, prediction_type, horizon)
        if not predictions:
            logger.info(
                "Not enough %s history for a %s forecast (%s samples)",
                prediction_type,
                horizon,
                len(samples),
            )
            return []

        try:
            rows = await self.repository.save_predictions(predictions)
        except SQLAlchemyError as e:
            logger.error("Failed to store predictions: %s", e)
            raise PersistenceError(f"Failed to store predictions: {e}") from e

        return [to_prediction(row) for row in rows]

    async def get_community_analytics(
        self,
        metric_names: Optional[Sequence[str]] = None,
        time_period: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[MetricSampleRead]:
        """Stored metric samples matching the filters, newest first."""
        try:
            samples = await self.repository.get_metric_samples(
                metric_names=metric_names,
                time_period=time_period,
                start=start,
                end=end,
                limit=limit,
            )
        except SQLAlchemyError as e:
            logger.error("Failed to load community analytics: %s", e)
            raise PersistenceError(
                f"Failed to load community analytics: {e}"
            ) from e

        return [to_metric_read(s) for s in samples]

    async def record_metric(self, sample: MetricSampleCreate) -> MetricSampleRead:
        try:
            row = await self.repository.create_metric_sample(sample)
        except SQLAlchemyError as e:
            logger.error("Failed to store metric %s: %s", sample.metric_name, e)
            raise PersistenceError(f"Failed to store metric: {e}") from e
        return to_metric_read(row)

    async def reconcile_prediction(
        self, prediction_id: uuid.UUID, actual_value: float
    ) -> TrendPrediction:
        """
        Record the observed value of a stored forecast and score it.

        Args:
            prediction_id: Stored prediction ID
            actual_value: Observed value of the forecast target

        Returns:
            TrendPrediction: Prediction with actual_value and accuracy_score
        """
        try:
            prediction = await self.repository.get_prediction(prediction_id)
            if prediction is None:
                raise NotFoundError(f"Prediction not found: {prediction_id}")

            accuracy = prediction_accuracy(
                prediction.predicted_value, actual_value
            )
            prediction = await self.repository.update_prediction_actual(
                prediction, actual_value, accuracy
            )
        except SQLAlchemyError as e:
            logger.error("Failed to reconcile prediction %s: %s", prediction_id, e)
            raise PersistenceError(f"Failed to reconcile prediction: {e}") from e

        return to_prediction(prediction)


# Factory function to create service with session
async def get_trend_service(session: AsyncSession) -> TrendPredictionService:
    """Get trend service bound to a database session."""
    return TrendPredictionService(
        TrendRepository(session),
        SentimentRepository(session),
    )
