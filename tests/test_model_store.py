import asyncio
import uuid
from datetime import datetime

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from community_analytics.exceptions import (
    NoActiveModelError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from community_analytics.ml.codec import params_from_text
from community_analytics.ml.models import MLModel
from community_analytics.ml.repository import MLModelRepository
from community_analytics.ml.schemas import (
    LexiconModelParams,
    LinearModelParams,
    ModelTrainingData,
)
from community_analytics.ml.service import (
    SENTIMENT_MODEL_METRICS,
    TREND_MODEL_METRICS,
    ModelStore,
    training_data_hash,
)


@pytest.fixture
def store(test_session, rng):
    return ModelStore(
        MLModelRepository(test_session),
        rng=rng,
        clock=lambda: datetime(2024, 5, 15, 12, 0, 0),
    )


def sentiment_training_data():
    return ModelTrainingData(
        input_data=["good", "bad"],
        target_data=[1.0, -1.0],
        features=["text"],
    )


class TestModelLifecycle:
    """Tests for storing and activating models."""

    @pytest.mark.asyncio
    async def test_store_is_inactive(self, store):
        # Arrange
        params = LinearModelParams(coefficients=[0.1])

        # Act
        model_id = await store.store("m", "trend", "1.0.0", params)

        # Assert
        model = await store.get_model(model_id)
        assert model.is_active is False
        assert model.model_type == "trend"
        assert params_from_text(model.model_data) == params

    @pytest.mark.asyncio
    async def test_activation_leaves_one_active(self, store):
        """Activating a model deactivates the other models of its type."""
        # Arrange
        first = await store.store("a", "trend", "1", LinearModelParams(coefficients=[]))
        second = await store.store("b", "trend", "2", LinearModelParams(coefficients=[]))
        other = await store.store("c", "sentiment", "1", LexiconModelParams())
        await store.activate_model(other)

        # Act
        await store.activate_model(first)
        await store.activate_model(second)

        # Assert
        trend_models = await store.get_models("trend")
        assert [m.id for m in trend_models if m.is_active] == [second]
        active = await store.get_active_model("trend")
        assert active.id == second
        assert (await store.get_active_model("sentiment")).id == other

    @pytest.mark.asyncio
    async def test_reactivating_active_model(self, store):
        model_id = await store.store("a", "trend", "1", LinearModelParams(coefficients=[]))

        await store.activate_model(model_id)
        model = await store.activate_model(model_id)

        assert model.is_active is True

    @pytest.mark.asyncio
    async def test_second_active_row_is_rejected(self, test_session):
        """The store refuses two active models of one type."""
        # Arrange
        test_session.add(
            MLModel(model_name="a", model_type="trend", model_version="1", is_active=True)
        )
        await test_session.commit()
        test_session.add(
            MLModel(model_name="b", model_type="trend", model_version="1", is_active=True)
        )

        # Act & Assert
        with pytest.raises(IntegrityError):
            await test_session.commit()

    @pytest.mark.asyncio
    async def test_unknown_model(self, store):
        # Arrange
        unknown = uuid.uuid4()

        # Act & Assert
        with pytest.raises(NotFoundError):
            await store.get_model(unknown)
        with pytest.raises(NotFoundError):
            await store.activate_model(unknown)
        with pytest.raises(NotFoundError):
            await store.update_metrics(unknown, {"mse": 1.0})
        with pytest.raises(NotFoundError):
            await store.delete_model(unknown)

    @pytest.mark.asyncio
    async def test_update_metrics_and_performance(self, store):
        # Arrange
        model_id = await store.store(
            "a", "trend", "1", LinearModelParams(coefficients=[]), metrics={"mse": 2.0}
        )
        before = await store.get_model(model_id)
        created_at = before.created_at

        # Act
        updated = await store.update_metrics(model_id, {"mse": 0.5})

        # Assert
        assert updated.performance_metrics == {"mse": 0.5}
        assert updated.updated_at >= created_at
        assert await store.get_model_performance(model_id) == {"mse": 0.5}

    @pytest.mark.asyncio
    async def test_delete_model(self, store):
        model_id = await store.store("a", "trend", "1", LinearModelParams(coefficients=[]))

        await store.delete_model(model_id)

        with pytest.raises(NotFoundError):
            await store.get_model(model_id)


class TestTraining:
    """Tests for the built-in model trainers."""

    def test_training_data_hash(self):
        # Arrange
        data = sentiment_training_data()
        same = sentiment_training_data()
        different = ModelTrainingData(input_data=["good"], target_data=[1.0])

        # Act & Assert
        assert training_data_hash(data) == training_data_hash(same)
        assert training_data_hash(data) != training_data_hash(different)
        assert len(training_data_hash(data)) == 64

    @pytest.mark.asyncio
    async def test_train_sentiment_model(self, store):
        # Arrange
        data = sentiment_training_data()

        # Act
        model_id = await store.train_sentiment_model(data)

        # Assert
        model = await store.get_model(model_id)
        assert model.model_name == "community_sentiment_v1"
        assert model.is_active is False
        assert model.performance_metrics == SENTIMENT_MODEL_METRICS
        assert model.training_data_hash == training_data_hash(data)
        assert model.model_metadata == {
            "training_samples": 2,
            "features": ["text"],
            "algorithm": "rule_based",
            "training_date": "2024-05-15T12:00:00",
        }
        assert isinstance(params_from_text(model.model_data), LexiconModelParams)

    @pytest.mark.asyncio
    async def test_train_trend_model(self, store):
        # Arrange
        data = ModelTrainingData(
            input_data=[[1.0, 2.0, 3.0]],
            target_data=[0.1],
            features=["sentiment", "engagement", "growth"],
        )

        # Act
        model_id = await store.train_trend_model(data)

        # Assert
        model = await store.get_model(model_id)
        params = params_from_text(model.model_data)
        assert isinstance(params, LinearModelParams)
        assert len(params.coefficients) == 3
        assert all(-1.0 <= c <= 1.0 for c in params.coefficients)
        assert params.intercept == 0.0
        assert params.features == data.features
        assert model.performance_metrics == TREND_MODEL_METRICS
        assert model.model_metadata["algorithm"] == "linear_regression"


class TestPrediction:
    """Tests for replaying active models."""

    @pytest.mark.asyncio
    async def test_no_active_model(self, store):
        await store.store("a", "sentiment", "1", LexiconModelParams())

        with pytest.raises(NoActiveModelError) as exc_info:
            await store.predict("sentiment", {"text": "good"})

        assert exc_info.value.code == "no_active_model"

    @pytest.mark.asyncio
    async def test_sentiment_prediction(self, store):
        # Arrange
        model_id = await store.store("a", "sentiment", "1.0.0", LexiconModelParams())
        await store.activate_model(model_id)

        # Act
        result = await store.predict("sentiment", {"text": "good"})

        # Assert
        assert result.model_id == model_id
        assert result.prediction == {"sentiment": "positive", "score": 1.0}
        assert result.confidence == pytest.approx(1.0)
        assert result.metadata["model_version"] == "1.0.0"
        assert result.metadata["prediction_timestamp"] == "2024-05-15T12:00:00"

    @pytest.mark.asyncio
    async def test_sentiment_prediction_uses_stored_rules(self, store):
        # Arrange
        params = LexiconModelParams()
        params.rules.positive_words = ["sunny"]
        model_id = await store.store("a", "sentiment", "1", params)
        await store.activate_model(model_id)

        # Act
        sunny = await store.predict("sentiment", {"text": "sunny day"})
        good = await store.predict("sentiment", {"text": "good day"})

        # Assert
        assert sunny.prediction["score"] == pytest.approx(0.5)
        assert good.prediction["sentiment"] == "neutral"

    @pytest.mark.asyncio
    async def test_trend_prediction(self, store):
        # Arrange
        params = LinearModelParams(coefficients=[0.5, -1.0], intercept=1.0)
        model_id = await store.store("a", "trend", "1", params)
        await store.activate_model(model_id)

        # Act
        result = await store.predict("trend", {"features": [2.0, 1.0, 99.0]})

        # Assert
        assert result.prediction == {"trend_value": 1.0, "direction": "rising"}
        assert 0.7 <= result.confidence <= 1.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "model_input",
        [
            {"features": ["abc"]},
            {"features": 5},
            {"features": [1.0, True]},
            {},
        ],
    )
    async def test_malformed_trend_input(self, store, model_input):
        # Arrange
        params = LinearModelParams(coefficients=[0.5, -1.0], intercept=1.0)
        await store.activate_model(await store.store("a", "trend", "1", params))

        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            await store.predict("trend", model_input)

        assert exc_info.value.status_code == 422
        assert exc_info.value.code == "validation_error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("model_input", [{"text": 42}, {"text": None}, {}])
    async def test_malformed_sentiment_input(self, store, model_input):
        # Arrange
        model_id = await store.store("a", "sentiment", "1", LexiconModelParams())
        await store.activate_model(model_id)

        # Act & Assert
        with pytest.raises(ValidationError) as exc_info:
            await store.predict("sentiment", model_input)

        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_unsupported_model_type(self, store):
        model_id = await store.store(
            "a", "clustering", "1", LinearModelParams(coefficients=[])
        )
        await store.activate_model(model_id)

        with pytest.raises(ValidationError):
            await store.predict("clustering", {"features": []})

    @pytest.mark.asyncio
    async def test_corrupt_model_data(self, store, test_session):
        # Arrange
        model_id = await store.store("a", "sentiment", "1", LexiconModelParams())
        model = await store.activate_model(model_id)
        model.model_data = "AAAA"
        test_session.add(model)
        await test_session.commit()

        # Act & Assert
        with pytest.raises(PersistenceError):
            await store.predict("sentiment", {"text": "good"})

    @pytest.mark.asyncio
    async def test_batch_predict(self, store):
        # Arrange
        model_id = await store.store("a", "sentiment", "1", LexiconModelParams())
        await store.activate_model(model_id)

        # Act
        results = await store.batch_predict(
            "sentiment", [{"text": "good"}, {"text": "terrible"}, {"text": ""}]
        )

        # Assert
        assert [r.prediction["sentiment"] for r in results] == [
            "positive",
            "negative",
            "neutral",
        ]


@pytest.fixture
async def file_engine(tmp_path):
    """
    Engine on a database file, so each session gets its own connection.

    Transactions take the write lock at BEGIN, the closest SQLite has to
    row locks, so racing activations queue instead of deadlocking.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'models.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def disable_driver_transactions(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


class TestConcurrentActivation:
    """Tests for activations racing on separate connections."""

    @pytest.mark.asyncio
    async def test_two_activations_leave_one_active(self, file_engine, rng):
        # Arrange
        session_factory = async_sessionmaker(
            bind=file_engine, class_=AsyncSession, expire_on_commit=False
        )
        async with session_factory() as session:
            setup = ModelStore(MLModelRepository(session), rng=rng)
            first = await setup.store(
                "a", "trend", "1", LinearModelParams(coefficients=[])
            )
            second = await setup.store(
                "b", "trend", "2", LinearModelParams(coefficients=[])
            )

        async with session_factory() as one, session_factory() as other:
            racers = [
                ModelStore(MLModelRepository(one), rng=rng),
                ModelStore(MLModelRepository(other), rng=rng),
            ]

            # Act
            outcomes = await asyncio.gather(
                racers[0].activate_model(first),
                racers[1].activate_model(second),
                return_exceptions=True,
            )

        # Assert
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        winners = {o.id for o in outcomes if isinstance(o, MLModel)}
        assert all(isinstance(f, PersistenceError) for f in failures)
        assert winners

        async with session_factory() as session:
            rows = await session.execute(
                select(MLModel.id)
                .where(MLModel.model_type == "trend")
                .where(MLModel.is_active == True)  # noqa: E712
            )
            active = rows.scalars().all()

        assert len(active) == 1
        assert active[0] in winners
