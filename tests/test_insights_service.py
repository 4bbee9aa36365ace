import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from community_analytics.exceptions import PersistenceError, ValidationError
from community_analytics.insights.schemas import AnalyticsConfig, CommunityInsights
from community_analytics.insights.service import (
    AnalyticsOrchestrator,
    config_fingerprint,
    get_analytics_orchestrator,
)
from community_analytics.sentiment.schemas import SentimentSummary
from community_analytics.trends.schemas import MetricSampleCreate


@pytest.fixture
def mock_services():
    """Mocked collaborators of the orchestrator."""
    sentiment_service = MagicMock()
    sentiment_service.get_community_sentiment_summary = AsyncMock(
        return_value=SentimentSummary(total_analyses=4, average_sentiment=0.5)
    )

    trend_service = MagicMock()
    trend_service.analyze_trends = AsyncMock(return_value=[])
    trend_service.generate_predictions = AsyncMock(return_value=[])

    activity_repository = MagicMock()
    activity_repository.count_posts = AsyncMock(return_value=4)
    activity_repository.count_comments = AsyncMock(return_value=2)
    activity_repository.count_users = AsyncMock(return_value=3)

    return sentiment_service, trend_service, activity_repository


@pytest.fixture
def orchestrator(mock_services, mock_redis_client, frozen_now):
    sentiment_service, trend_service, activity_repository = mock_services
    return AnalyticsOrchestrator(
        sentiment_service=sentiment_service,
        trend_service=trend_service,
        model_store=MagicMock(),
        activity_repository=activity_repository,
        cache=mock_redis_client,
        clock=lambda: frozen_now,
    )


@pytest.fixture
async def db_orchestrator(test_session, mock_redis_client, frozen_now):
    orchestrator = await get_analytics_orchestrator(test_session)
    orchestrator.cache = mock_redis_client
    return orchestrator


class TestComputeInsights:
    """Tests for building community reports."""

    @pytest.mark.asyncio
    async def test_all_sections(self, orchestrator, mock_services, frozen_now):
        # Arrange
        _, trend_service, _ = mock_services

        # Act
        insights = await orchestrator.compute_insights(AnalyticsConfig())

        # Assert
        assert insights.generated_at == frozen_now
        assert insights.sentiment_analysis.average_sentiment == 0.5
        assert insights.community_metrics.total_posts == 4
        assert insights.community_metrics.engagement_rate == pytest.approx(200.0)
        assert trend_service.generate_predictions.await_count == 3
        trend_service.generate_predictions.assert_any_await("engagement", "short")
        trend_service.generate_predictions.assert_any_await("growth", "medium")
        trend_service.generate_predictions.assert_any_await("sentiment", "long")
        assert [r.title for r in insights.recommendations] == [
            "Positive Community Health"
        ]

    @pytest.mark.asyncio
    async def test_disabled_sections_stay_empty(self, orchestrator, mock_services):
        # Arrange
        sentiment_service, trend_service, activity_repository = mock_services
        config = AnalyticsConfig(enabled_insights=["sentiment"])

        # Act
        insights = await orchestrator.compute_insights(config)

        # Assert
        assert insights.sentiment_analysis.total_analyses == 4
        assert insights.recommendations == []
        trend_service.analyze_trends.assert_not_awaited()
        trend_service.generate_predictions.assert_not_awaited()
        activity_repository.count_posts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_section_degrades(self, orchestrator, mock_services):
        """A failing section is left empty while the others complete."""
        # Arrange
        _, trend_service, activity_repository = mock_services
        trend_service.analyze_trends.side_effect = PersistenceError("down")
        activity_repository.count_posts.side_effect = OperationalError(
            "SELECT", {}, Exception("no posts table")
        )

        # Act
        insights = await orchestrator.compute_insights(AnalyticsConfig())

        # Assert
        assert insights.trend_analysis == []
        assert insights.community_metrics.total_posts == 0
        assert insights.sentiment_analysis.average_sentiment == 0.5
        assert trend_service.generate_predictions.await_count == 3

    @pytest.mark.asyncio
    async def test_failed_section_rolls_back_session(
        self, mock_services, mock_redis_client, mock_session
    ):
        # Arrange
        sentiment_service, trend_service, activity_repository = mock_services
        sentiment_service.get_community_sentiment_summary.side_effect = (
            PersistenceError("down")
        )
        orchestrator = AnalyticsOrchestrator(
            sentiment_service,
            trend_service,
            MagicMock(),
            activity_repository,
            cache=mock_redis_client,
            session=mock_session,
        )

        # Act
        insights = await orchestrator.compute_insights(
            AnalyticsConfig(enabled_insights=["sentiment"])
        )

        # Assert
        assert insights.sentiment_analysis.total_analyses == 0
        mock_session.rollback.assert_awaited_once()


class TestCommunityMetrics:
    """Tests for activity counts over the reporting window."""

    @pytest.mark.asyncio
    async def test_metrics_from_activity(
        self, activity_tables, test_session, create_activity, db_orchestrator,
        frozen_now,
    ):
        # Arrange
        await create_activity(
            test_session,
            post_times=[frozen_now - timedelta(days=d) for d in (1, 2, 3, 4)]
            + [frozen_now - timedelta(days=d) for d in (9, 10)],
            comment_times=[frozen_now - timedelta(hours=3)] * 2
            + [frozen_now - timedelta(days=20)],
            users=3,
        )
        db_orchestrator.clock = lambda: frozen_now

        # Act
        metrics = await db_orchestrator.get_community_metrics(
            AnalyticsConfig(time_period="week")
        )

        # Assert
        assert metrics.total_posts == 4
        assert metrics.total_comments == 2
        assert metrics.total_users == 3
        assert metrics.engagement_rate == pytest.approx(200.0)
        assert metrics.growth_rate == pytest.approx(100.0)

    @pytest.mark.asyncio
    async def test_rates_are_zero_without_history(
        self, activity_tables, test_session, create_activity, db_orchestrator,
        frozen_now,
    ):
        await create_activity(test_session, post_times=[frozen_now], users=0)
        db_orchestrator.clock = lambda: frozen_now

        metrics = await db_orchestrator.get_community_metrics(AnalyticsConfig())

        assert metrics.total_posts == 1
        assert metrics.engagement_rate == 0.0
        assert metrics.growth_rate == 0.0


class TestInsightsCache:
    """Tests for the report cache."""

    @pytest.mark.asyncio
    async def test_cache_miss_stores_report(
        self, orchestrator, mock_redis_client
    ):
        # Arrange
        config = AnalyticsConfig(refresh_interval=60)

        # Act
        insights = await orchestrator.get_insights(config)

        # Assert
        assert insights.cached is False
        key = f"community_insights:{config_fingerprint(config)}"
        mock_redis_client.get_object.assert_awaited_once_with(key, CommunityInsights)
        mock_redis_client.set_object.assert_awaited_once_with(
            key, insights, ttl=60
        )

    @pytest.mark.asyncio
    async def test_cache_hit_skips_computation(
        self, orchestrator, mock_services, mock_redis_client
    ):
        # Arrange
        sentiment_service, _, _ = mock_services
        mock_redis_client.get_object.return_value = CommunityInsights()

        # Act
        insights = await orchestrator.get_insights(AnalyticsConfig())

        # Assert
        assert insights.cached is True
        sentiment_service.get_community_sentiment_summary.assert_not_awaited()
        mock_redis_client.set_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_refresh_interval_bypasses_cache(
        self, orchestrator, mock_redis_client
    ):
        await orchestrator.get_insights(AnalyticsConfig(refresh_interval=0))

        mock_redis_client.get_object.assert_not_awaited()
        mock_redis_client.set_object.assert_not_awaited()

    def test_fingerprint_depends_on_config(self):
        assert config_fingerprint(AnalyticsConfig()) == config_fingerprint(
            AnalyticsConfig()
        )
        assert config_fingerprint(AnalyticsConfig()) != config_fingerprint(
            AnalyticsConfig(time_period="month")
        )


class TestExport:
    """Tests for report export."""

    @pytest.mark.asyncio
    async def test_export_csv(self, orchestrator, mock_redis_client):
        # Act
        exported = await orchestrator.export_analytics_data("csv", "week")

        # Assert
        lines = exported.split("\n")
        assert lines[0] == "Metric,Value,Type,Timestamp"
        assert len(lines) == 8
        assert "Average Sentiment,0.5,sentiment,2024-05-15T12:00:00" in lines
        assert "Total Posts,4,count,2024-05-15T12:00:00" in lines
        assert "Engagement Rate,200.0,percentage,2024-05-15T12:00:00" in lines
        mock_redis_client.get_object.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_export_json(self, orchestrator):
        exported = await orchestrator.export_analytics_data("json")

        data = json.loads(exported)
        assert data["community_metrics"]["total_users"] == 3
        assert data["sentiment_analysis"]["average_sentiment"] == 0.5

    @pytest.mark.asyncio
    async def test_export_unsupported_format(self, orchestrator, mock_services):
        # Arrange
        sentiment_service, _, _ = mock_services

        # Act & Assert
        with pytest.raises(ValidationError):
            await orchestrator.export_analytics_data("xml")

        sentiment_service.get_community_sentiment_summary.assert_not_awaited()


class TestSnapshotsAndTraining:
    """Tests for storing report snapshots and training models from history."""

    @pytest.mark.asyncio
    async def test_store_and_read_snapshot(self, db_orchestrator, frozen_now):
        # Arrange
        db_orchestrator.clock = lambda: frozen_now
        insights = CommunityInsights(
            sentiment_analysis=SentimentSummary(
                total_analyses=2, average_sentiment=-0.25
            )
        )
        config = AnalyticsConfig(
            time_period="month", geographic_scope={"city": "Lviv"}
        )

        # Act
        stored = await db_orchestrator.store_analytics_data(insights, config)
        history = await db_orchestrator.get_historical_analytics(
            ["community_insights"], "month"
        )

        # Assert
        assert stored.metric_value == -0.25
        assert stored.metric_type == "score"
        assert stored.geographic_scope == {"city": "Lviv"}
        assert stored.calculated_at == frozen_now
        assert [s.id for s in history] == [stored.id]
        assert history[0].metadata["trend_count"] == 0
        assert history[0].metadata["sentiment_analysis"]["total_analyses"] == 2

    @pytest.mark.asyncio
    async def test_train_models_activates_both(
        self, db_orchestrator, test_session, create_sentiment_record
    ):
        # Arrange
        await create_sentiment_record(test_session, content_id="a", text="good")
        await create_sentiment_record(
            test_session, content_id="b", text="awful", sentiment_score=-1.0,
            sentiment_label="negative",
        )
        await db_orchestrator.trend_service.record_metric(
            MetricSampleCreate(metric_name="community_insights", metric_value=0.3)
        )

        # Act
        result = await db_orchestrator.train_models()

        # Assert
        store = db_orchestrator.model_store
        sentiment_model = await store.get_active_model("sentiment")
        trend_model = await store.get_active_model("trend")
        assert sentiment_model.id == result.sentiment_model_id
        assert trend_model.id == result.trend_model_id
        assert sentiment_model.model_metadata["training_samples"] == 2
        assert trend_model.model_metadata["features"] == [
            "time_period",
            "geographic_scope",
            "demographic_scope",
            "previous_value",
        ]

    @pytest.mark.asyncio
    async def test_sentiment_training_data(
        self, db_orchestrator, test_session, create_sentiment_record
    ):
        # Arrange
        await create_sentiment_record(test_session, text="lovely park")

        # Act
        data = await db_orchestrator.get_sentiment_training_data()

        # Assert
        assert data.input_data == [
            {"text": "lovely park", "content_type": "post", "location": {}}
        ]
        assert data.target_data == [
            {"sentiment_score": 0.5, "sentiment_label": "positive"}
        ]
        assert data.metadata["training_samples"] == 1

    @pytest.mark.asyncio
    async def test_training_without_history(self, db_orchestrator):
        result = await db_orchestrator.train_models()

        trend_model = await db_orchestrator.model_store.get_model(
            result.trend_model_id
        )
        assert trend_model.is_active is True
        assert trend_model.model_metadata["training_samples"] == 0
