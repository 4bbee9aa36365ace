import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import OperationalError as DatabaseOperationalError

from community_analytics.config import settings
from community_analytics.database import engine, session_scope
from community_analytics.exceptions import CustomException
from community_analytics.insights.schemas import AnalyticsConfig
from community_analytics.insights.service import (
    AnalyticsOrchestrator,
    get_analytics_orchestrator,
)
from community_analytics.tasks.worker import celery_app


logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_orchestrator(
    work: Callable[[AnalyticsOrchestrator], Awaitable[T]],
) -> T:
    """
    Run `work` on a fresh event loop with its own database session.

    Pooled connections are bound to the loop that opened them, so the pool
    is emptied before the loop closes.
    """

    async def runner() -> T:
        try:
            async with session_scope() as session:
                orchestrator = await get_analytics_orchestrator(session)
                return await work(orchestrator)
        finally:
            await engine.dispose()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(runner())
    finally:
        loop.close()


@celery_app.task(
    bind=True,
    name="train_models",
    default_retry_delay=settings.TASK_RETRY_DELAY,
    max_retries=settings.TASK_MAX_RETRIES,
)
def train_models(self) -> dict[str, Any]:
    """
    Train the built-in sentiment and trend models on the stored history
    and activate both.

    Returns:
        dict: Task status with the IDs of the activated models
    """
    task_id = self.request.id or str(uuid.uuid4())
    logger.info("Starting model training (task_id=%s)", task_id)

    try:
        result = run_with_orchestrator(lambda o: o.train_models())
    except CustomException as e:
        if isinstance(e.__cause__, DatabaseOperationalError):
            raise self.retry(exc=e)
        logger.exception("Model training failed (task_id=%s): %s", task_id, e)
        return {
            "task_id": task_id,
            "status": "failed",
            "message": f"Error training models: {e.detail}",
            "success": False,
        }

    return {
        "task_id": task_id,
        "status": "completed",
        "sentiment_model_id": str(result.sentiment_model_id),
        "trend_model_id": str(result.trend_model_id),
        "success": True,
    }


@celery_app.task(
    bind=True,
    name="store_insights_snapshot",
    default_retry_delay=settings.TASK_RETRY_DELAY,
    max_retries=settings.TASK_MAX_RETRIES,
)
def store_insights_snapshot(self, time_period: str = "week") -> dict[str, Any]:
    """
    Compute a full community report and append it to the metric history.

    Args:
        time_period: Report period

    Returns:
        dict: Task status with the stored sample ID
    """
    task_id = self.request.id or str(uuid.uuid4())
    config = AnalyticsConfig(time_period=time_period)  # type: ignore[arg-type]

    logger.info(
        "Storing insights snapshot for period=%s (task_id=%s)",
        time_period,
        task_id,
    )

    async def snapshot(orchestrator: AnalyticsOrchestrator) -> uuid.UUID:
        insights = await orchestrator.get_insights(config, use_cache=False)
        sample = await orchestrator.store_analytics_data(insights, config)
        return sample.id

    try:
        sample_id = run_with_orchestrator(snapshot)
    except CustomException as e:
        if isinstance(e.__cause__, DatabaseOperationalError):
            raise self.retry(exc=e)
        logger.exception(
            "Insights snapshot failed for period=%s (task_id=%s): %s",
            time_period,
            task_id,
            e,
        )
        return {
            "task_id": task_id,
            "time_period": time_period,
            "status": "failed",
            "message": f"Error storing snapshot: {e.detail}",
            "success": False,
        }

    return {
        "task_id": task_id,
        "time_period": time_period,
        "status": "completed",
        "sample_id": str(sample_id),
        "success": True,
    }
