from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.database import get_session
from community_analytics.insights.service import (
    AnalyticsOrchestrator,
    get_analytics_orchestrator,
)
from community_analytics.ml.service import ModelStore, get_model_store
from community_analytics.sentiment.service import (
    SentimentAnalysisService,
    get_sentiment_service,
)
from community_analytics.trends.service import (
    TrendPredictionService,
    get_trend_service,
)


SESSION_DEPENDENCY = Depends(get_session)


async def sentiment_service_dependency(
    session: AsyncSession = SESSION_DEPENDENCY,
) -> SentimentAnalysisService:
    return await get_sentiment_service(session)


async def trend_service_dependency(
    session: AsyncSession = SESSION_DEPENDENCY,
) -> TrendPredictionService:
    return await get_trend_service(session)


async def model_store_dependency(
    session: AsyncSession = SESSION_DEPENDENCY,
) -> ModelStore:
    return await get_model_store(session)


async def orchestrator_dependency(
    session: AsyncSession = SESSION_DEPENDENCY,
) -> AnalyticsOrchestrator:
    return await get_analytics_orchestrator(session)
