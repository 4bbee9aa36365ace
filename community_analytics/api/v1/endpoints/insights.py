import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from kombu.exceptions import OperationalError

from community_analytics.api.dependencies import orchestrator_dependency
from community_analytics.config import settings
from community_analytics.insights.schemas import (
    ALL_SECTIONS,
    AnalyticsConfig,
    CommunityInsights,
    GeographicScope,
    InsightSection,
    TimePeriod,
)
from community_analytics.insights.service import AnalyticsOrchestrator
from community_analytics.tasks.analytics_tasks import store_insights_snapshot
from community_analytics.trends.schemas import MetricSampleRead


logger = logging.getLogger(__name__)

router = APIRouter()

ORCHESTRATOR = Depends(orchestrator_dependency)

TIME_PERIOD_QUERY = Query("week", description="Reporting window")
SECTIONS_QUERY = Query(None, description="Report sections, all if omitted")
REFRESH_INTERVAL_QUERY = Query(
    settings.INSIGHTS_CACHE_TTL,
    ge=0,
    description="Seconds a cached report may be served, 0 disables caching",
)

EXPORT_MEDIA_TYPES = {"json": "application/json", "csv": "text/csv"}


@router.get(
    "",
    response_model=CommunityInsights,
    summary="Get community insights",
    description=(
        "Compute the community report for the window ending now. Sections "
        "that fail to load are returned zeroed."
    ),
)
async def get_insights(
    time_period: TimePeriod = TIME_PERIOD_QUERY,
    sections: Optional[list[InsightSection]] = SECTIONS_QUERY,
    refresh_interval: int = REFRESH_INTERVAL_QUERY,
    city: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    country: Optional[str] = Query(None),
    orchestrator: AnalyticsOrchestrator = ORCHESTRATOR,
) -> CommunityInsights:
    geographic_scope = (
        GeographicScope(city=city, state=state, country=country)
        if city or state or country
        else None
    )
    config = AnalyticsConfig(
        time_period=time_period,
        geographic_scope=geographic_scope,
        enabled_insights=sections or list(ALL_SECTIONS),
        refresh_interval=refresh_interval,
    )
    return await orchestrator.get_insights(config)


@router.post(
    "/snapshots",
    response_model=MetricSampleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Compute and store a report snapshot",
)
async def create_snapshot(
    config: AnalyticsConfig,
    orchestrator: AnalyticsOrchestrator = ORCHESTRATOR,
) -> MetricSampleRead:
    """
    Compute a fresh report and append its summary to the metric history.

    Args:
        config: Report parameters
        orchestrator: Analytics orchestrator

    Returns:
        MetricSampleRead: Stored `community_insights` sample
    """
    insights = await orchestrator.get_insights(config, use_cache=False)
    return await orchestrator.store_analytics_data(insights, config)


@router.post(
    "/snapshots/async",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a report snapshot on the worker",
)
async def queue_snapshot(time_period: TimePeriod = TIME_PERIOD_QUERY) -> dict[str, str]:
    try:
        task = store_insights_snapshot.delay(time_period=time_period)
    except (OperationalError, ConnectionError) as e:
        logger.error(f"Failed to connect to Celery broker: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task queue is unavailable",
        ) from e

    logger.info(f"Queued insights snapshot task (ID: {task.id})")
    return {"task_id": task.id}


@router.get(
    "/history",
    response_model=list[MetricSampleRead],
    summary="Get stored metric history",
)
async def get_history(
    metric_names: list[str] = Query(["community_insights"]),
    time_period: TimePeriod = TIME_PERIOD_QUERY,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    orchestrator: AnalyticsOrchestrator = ORCHESTRATOR,
) -> list[MetricSampleRead]:
    return await orchestrator.get_historical_analytics(
        metric_names, time_period, start, end
    )


@router.get(
    "/export",
    summary="Export a full community report",
    response_class=Response,
)
async def export_insights(
    export_format: str = Query("json", alias="format"),
    time_period: TimePeriod = TIME_PERIOD_QUERY,
    orchestrator: AnalyticsOrchestrator = ORCHESTRATOR,
) -> Response:
    content = await orchestrator.export_analytics_data(export_format, time_period)
    return Response(
        content=content,
        media_type=EXPORT_MEDIA_TYPES[export_format],
    )
