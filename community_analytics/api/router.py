from fastapi import APIRouter

from community_analytics.api.v1.endpoints import insights, models, sentiment, trends


api_router = APIRouter()

# Include endpoint routers
api_router.include_router(
    insights.router,
    prefix="/insights",
    tags=["Community Insights"],
)

api_router.include_router(
    sentiment.router,
    prefix="/sentiment",
    tags=["Sentiment"],
)

api_router.include_router(
    trends.router,
    prefix="/trends",
    tags=["Trends & Predictions"],
)

api_router.include_router(
    models.router,
    prefix="/models",
    tags=["Models"],
)
