import hashlib
import json
import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.cache.redis import RedisClient, redis_client
from community_analytics.config import settings
from community_analytics.constants import TREND_DIMENSIONS, CacheKeys
from community_analytics.exceptions import PersistenceError, ValidationError
from community_analytics.insights.export import insights_to_csv
from community_analytics.insights.recommendations import build_recommendations
from community_analytics.insights.repository import CommunityActivityRepository
from community_analytics.insights.schemas import (
    ALL_SECTIONS,
    AnalyticsConfig,
    CommunityInsights,
    CommunityMetrics,
)
from community_analytics.ml.repository import MLModelRepository
from community_analytics.ml.schemas import ModelTrainingData, TrainingResult
from community_analytics.ml.service import ModelStore
from community_analytics.sentiment.aggregator import SentimentAggregator
from community_analytics.sentiment.repository import SentimentRepository
from community_analytics.sentiment.service import SentimentAnalysisService
from community_analytics.trends.repository import TrendRepository
from community_analytics.trends.schemas import MetricSampleCreate, MetricSampleRead
from community_analytics.trends.service import TrendPredictionService
from community_analytics.utils import period_start, utcnow


logger = logging.getLogger(__name__)

INSIGHTS_METRIC = "community_insights"

# (metric, horizon) pairs forecast for every report
PREDICTION_PLAN = [
    ("engagement", "short"),
    ("growth", "medium"),
    ("sentiment", "long"),
]


def config_fingerprint(config: AnalyticsConfig) -> str:
    canonical = json.dumps(config.model_dump(mode="json"), sort_keys=True)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def trend_direction_of(value: float) -> str:
    if value > 0:
        return "rising"
    if value < 0:
        return "falling"
    return "stable"


class AnalyticsOrchestrator:
    """Composes sentiment, trend and model services into community reports."""

    def __init__(
        self,
        sentiment_service: SentimentAnalysisService,
        trend_service: TrendPredictionService,
        model_store: ModelStore,
        activity_repository: CommunityActivityRepository,
        cache: RedisClient = redis_client,
        session: Optional[AsyncSession] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sentiment_service = sentiment_service
        self.trend_service = trend_service
        self.model_store = model_store
        self.activity_repository = activity_repository
        self.cache = cache
        self.session = session
        self.clock = clock

    async def get_insights(
        self, config: AnalyticsConfig, use_cache: bool = True
    ) -> CommunityInsights:
        """
        Get a community report, served from cache when a fresh one exists.

        Args:
            config: Report parameters
            use_cache: Whether to read and write the report cache

        Returns:
            CommunityInsights: Report with `cached` set on a cache hit
        """
        use_cache = use_cache and config.refresh_interval > 0
        cache_key = CacheKeys.COMMUNITY_INSIGHTS.format(
            fingerprint=config_fingerprint(config)
        )

        if use_cache:
            cached = await self.cache.get_object(cache_key, CommunityInsights)
            if isinstance(cached, CommunityInsights):
                logger.debug("Serving community insights from cache")
                cached.cached = True
                return cached

        insights = await self.compute_insights(config)

        if use_cache:
            await self.cache.set_object(
                cache_key, insights, ttl=config.refresh_interval
            )

        return insights

    async def compute_insights(self, config: AnalyticsConfig) -> CommunityInsights:
        """
        Build every requested section of the report.

        Sections are independent: a store failure in one is logged and leaves
        that section zeroed while the others complete.
        """
        enabled = set(config.enabled_insights)
        insights = CommunityInsights(generated_at=self.clock())

        if "sentiment" in enabled:
            try:
                insights.sentiment_analysis = (
                    await self.sentiment_service.get_community_sentiment_summary(
                        config.time_period
                    )
                )
            except PersistenceError as e:
                await self._section_failed("sentiment", e)

        if "trends" in enabled:
            try:
                insights.trend_analysis = await self.trend_service.analyze_trends(
                    config.time_period, TREND_DIMENSIONS
                )
            except PersistenceError as e:
                await self._section_failed("trends", e)

        if "predictions" in enabled:
            for prediction_type, horizon in PREDICTION_PLAN:
                try:
                    insights.predictions.extend(
                        await self.trend_service.generate_predictions(
                            prediction_type, horizon  # type: ignore[arg-type]
                        )
                    )
                except PersistenceError as e:
                    await self._section_failed(
                        f"predictions ({prediction_type})", e
                    )

        if "metrics" in enabled:
            try:
                insights.community_metrics = await self.get_community_metrics(
                    config
                )
            except SQLAlchemyError as e:
                await self._section_failed("metrics", e)

        if "recommendations" in enabled:
            insights.recommendations = build_recommendations(insights)

        logger.info(
            "Computed community insights for period=%s: %s trends, "
            "%s predictions, %s recommendations",
            config.time_period,
            len(insights.trend_analysis),
            len(insights.predictions),
            len(insights.recommendations),
        )

        return insights

    async def get_community_metrics(self, config: AnalyticsConfig) -> CommunityMetrics:
        end = self.clock()
        start = period_start(config.time_period, end)
        previous_start = start - (end - start)

        total_posts = await self.activity_repository.count_posts(start, end)
        total_comments = await self.activity_repository.count_comments(start, end)
        total_users = await self.activity_repository.count_users()
        previous_posts = await self.activity_repository.count_posts(
            previous_start, start, include_end=False
        )

        engagement_rate = (
            (total_posts + total_comments) / total_users * 100
            if total_posts and total_users
            else 0.0
        )
        growth_rate = (
            (total_posts - previous_posts) / previous_posts * 100
            if total_posts and previous_posts
            else 0.0
        )

        return CommunityMetrics(
            total_posts=total_posts,
            total_comments=total_comments,
            total_users=total_users,
            engagement_rate=engagement_rate,
            growth_rate=growth_rate,
        )

    async def store_analytics_data(
        self, insights: CommunityInsights, config: AnalyticsConfig
    ) -> MetricSampleRead:
        """
        Append a report summary to the metric history.

        Args:
            insights: Computed report
            config: Parameters the report was computed with

        Returns:
            MetricSampleRead: Stored `community_insights` sample
        """
        sample = MetricSampleCreate(
            metric_name=INSIGHTS_METRIC,
            metric_value=insights.sentiment_analysis.average_sentiment,
            metric_type="score",
            time_period=config.time_period,
            geographic_scope=(
                config.geographic_scope.model_dump(exclude_none=True)
                if config.geographic_scope
                else {}
            ),
            demographic_scope=(
                config.demographic_scope.model_dump(exclude_none=True)
                if config.demographic_scope
                else {}
            ),
            calculated_at=self.clock(),
            metadata={
                "sentiment_analysis": insights.sentiment_analysis.model_dump(
                    mode="json"
                ),
                "trend_count": len(insights.trend_analysis),
                "prediction_count": len(insights.predictions),
                "community_metrics": insights.community_metrics.model_dump(
                    mode="json"
                ),
                "recommendation_count": len(insights.recommendations),
            },
        )
        return await self.trend_service.record_metric(sample)

    async def get_historical_analytics(
        self,
        metric_names: Sequence[str],
        time_period: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[MetricSampleRead]:
        return await self.trend_service.get_community_analytics(
            metric_names=metric_names,
            time_period=time_period,
            start=start,
            end=end,
        )

    async def export_analytics_data(
        self, export_format: str = "json", time_period: str = "week"
    ) -> str:
        """
        Compute a full report and serialize it.

        Args:
            export_format: "json" or "csv"
            time_period: Report period

        Returns:
            str: Serialized report
        """
        if export_format not in ("json", "csv"):
            raise ValidationError(f"Unsupported export format: {export_format}")

        config = AnalyticsConfig(
            time_period=time_period,  # type: ignore[arg-type]
            enabled_insights=list(ALL_SECTIONS),
        )
        insights = await self.get_insights(config, use_cache=False)

        if export_format == "json":
            return insights.model_dump_json(indent=2)
        return insights_to_csv(insights, self.clock())

    async def train_models(self) -> TrainingResult:
        """
        Train and activate both built-in models from the stored history.

        Returns:
            TrainingResult: IDs of the activated sentiment and trend models
        """
        sentiment_data = await self.get_sentiment_training_data()
        trend_data = await self.get_trend_training_data()

        sentiment_model_id = await self.model_store.train_sentiment_model(
            sentiment_data
        )
        trend_model_id = await self.model_store.train_trend_model(trend_data)

        await self.model_store.activate_model(sentiment_model_id)
        await self.model_store.activate_model(trend_model_id)

        logger.info(
            "Activated sentiment model %s and trend model %s",
            sentiment_model_id,
            trend_model_id,
        )

        return TrainingResult(
            sentiment_model_id=sentiment_model_id,
            trend_model_id=trend_model_id,
        )

    async def get_sentiment_training_data(self) -> ModelTrainingData:
        records = await self.sentiment_service.get_records(
            ascending=False, limit=settings.TRAINING_SAMPLE_LIMIT
        )
        if not records:
            return ModelTrainingData()

        input_data = []
        target_data = []
        for record in records:
            meta = record.analysis_metadata or {}
            input_data.append(
                {
                    "text": meta.get("text") or "",
                    "content_type": record.content_type,
                    "location": meta.get("location") or {},
                }
            )
            target_data.append(
                {
                    "sentiment_score": record.sentiment_score,
                    "sentiment_label": record.sentiment_label,
                }
            )

        return ModelTrainingData(
            input_data=input_data,
            target_data=target_data,
            features=["text", "content_type", "location"],
            metadata=self._training_metadata(
                [r.created_at for r in records]
            ),
        )

    async def get_trend_training_data(self) -> ModelTrainingData:
        samples = await self.trend_service.get_community_analytics(
            metric_names=[INSIGHTS_METRIC], limit=settings.TRAINING_SAMPLE_LIMIT
        )
        if not samples:
            return ModelTrainingData()

        return ModelTrainingData(
            input_data=[
                {
                    "time_period": s.time_period,
                    "geographic_scope": s.geographic_scope,
                    "demographic_scope": s.demographic_scope,
                    "previous_value": s.metric_value,
                }
                for s in samples
            ],
            target_data=[
                {
                    "trend_value": s.metric_value,
                    "trend_direction": trend_direction_of(s.metric_value),
                }
                for s in samples
            ],
            features=[
                "time_period",
                "geographic_scope",
                "demographic_scope",
                "previous_value",
            ],
            metadata=self._training_metadata([s.calculated_at for s in samples]),
        )

    @staticmethod
    def _training_metadata(newest_first: list[datetime]) -> dict[str, Any]:
        return {
            "training_samples": len(newest_first),
            "date_range": {
                "start": newest_first[-1].isoformat(),
                "end": newest_first[0].isoformat(),
            },
        }

    async def _section_failed(self, section: str, error: Exception) -> None:
        logger.error("Community insights section %s failed: %s", section, error)
        # A failed statement can leave the shared transaction unusable
        if self.session is not None:
            await self.session.rollback()


# Factory function to create service with session
async def get_analytics_orchestrator(session: AsyncSession) -> AnalyticsOrchestrator:
    """Get analytics orchestrator bound to a database session."""
    sentiment_repository = SentimentRepository(session)

    return AnalyticsOrchestrator(
        sentiment_service=SentimentAnalysisService(
            sentiment_repository,
            aggregator=SentimentAggregator(top_limit=settings.TOP_CONTENT_LIMIT),
        ),
        trend_service=TrendPredictionService(
            TrendRepository(session), sentiment_repository
        ),
        model_store=ModelStore(MLModelRepository(session)),
        activity_repository=CommunityActivityRepository(session),
        session=session,
    )
