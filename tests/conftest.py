import random
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from community_analytics.database import register_models
from community_analytics.insights.repository import comments, posts, profiles
from community_analytics.main import app
from community_analytics.sentiment.models import SentimentRecord
from community_analytics.sentiment.schemas import SentimentResult
from community_analytics.trends.models import MetricSample
from community_analytics.utils import utcnow


# Override database URL for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


register_models()


@pytest.fixture
async def test_engine():
    """Create a fresh in-memory database engine for each test."""
    # One shared connection so every session sees the same in-memory database
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def activity_tables(test_engine):
    """Create the posts, comments and profiles tables the app only counts."""
    async with test_engine.begin() as conn:
        await conn.exec_driver_sql(
            "CREATE TABLE posts (id INTEGER PRIMARY KEY, created_at TIMESTAMP)"
        )
        await conn.exec_driver_sql(
            "CREATE TABLE comments (id INTEGER PRIMARY KEY, created_at TIMESTAMP)"
        )
        await conn.exec_driver_sql("CREATE TABLE profiles (id INTEGER PRIMARY KEY)")
    return test_engine


@pytest.fixture
async def test_session(test_engine):
    """Create a test database session."""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    session = session_factory()
    try:
        yield session
    finally:
        await session.rollback()
        await session.close()


@pytest.fixture
def client():
    """Create a test client with overridden dependencies."""
    from fastapi.testclient import TestClient

    test_client = TestClient(app)

    yield test_client

    # Clean up dependency overrides
    app.dependency_overrides.clear()


@pytest.fixture
def rng():
    """Deterministic random source."""
    return random.Random(42)


@pytest.fixture
def frozen_now():
    """A fixed Wednesday noon, UTC."""
    return datetime(2024, 5, 15, 12, 0, 0)


# Fixture functions that create database rows
@pytest.fixture
def create_sentiment_record():
    """Create a SentimentRecord row."""

    async def _create_sentiment_record(
        test_session,
        content_id="post-1",
        content_type="post",
        sentiment_score=0.5,
        sentiment_label="positive",
        confidence_score=0.8,
        text="good news",
        created_at=None,
    ):
        record = SentimentRecord(
            content_id=content_id,
            content_type=content_type,
            sentiment_score=sentiment_score,
            sentiment_label=sentiment_label,
            confidence_score=confidence_score,
            analysis_metadata={"text": text, "text_length": len(text)},
            created_at=created_at or utcnow(),
        )
        test_session.add(record)
        await test_session.commit()
        await test_session.refresh(record)
        return record

    return _create_sentiment_record


@pytest.fixture
def create_metric_series():
    """Create one metric sample per day, oldest first, ending now."""

    async def _create_metric_series(test_session, metric_name, values, end=None):
        end = end or utcnow()
        rows = [
            MetricSample(
                metric_name=metric_name,
                metric_value=value,
                time_period="daily",
                calculated_at=end - timedelta(days=len(values) - 1 - i),
            )
            for i, value in enumerate(values)
        ]
        test_session.add_all(rows)
        await test_session.commit()
        return rows

    return _create_metric_series


@pytest.fixture
def create_activity():
    """Insert posts, comments and profiles."""

    async def _create_activity(
        test_session, post_times=(), comment_times=(), users=0
    ):
        for moment in post_times:
            await test_session.execute(insert(posts).values(created_at=moment))
        for moment in comment_times:
            await test_session.execute(insert(comments).values(created_at=moment))
        for user_id in range(1, users + 1):
            await test_session.execute(insert(profiles).values(id=user_id))
        await test_session.commit()

    return _create_activity


# Mock schema objects
@pytest.fixture
def mock_sentiment_result():
    """Mock SentimentResult response."""
    return SentimentResult(
        sentiment_score=0.5,
        sentiment_label="positive",
        confidence_score=0.85,
    )


# Mocks for external services
@pytest.fixture
def mock_redis_client():
    """Mock RedisClient for caching."""
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=0)
    mock.get_object = AsyncMock(return_value=None)
    mock.set_object = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def mock_celery_task():
    """Mock Celery task."""
    with patch(
        "community_analytics.api.v1.endpoints.models.train_models_task"
    ) as mock:
        mock.delay.return_value = MagicMock(id="test-task-id")
        yield mock


@pytest.fixture
def mock_session():
    """Mock database session."""
    return AsyncMock()
