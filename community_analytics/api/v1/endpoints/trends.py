import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from community_analytics.api.dependencies import trend_service_dependency
from community_analytics.insights.schemas import TimePeriod
from community_analytics.trends.schemas import (
    MetricSampleCreate,
    MetricSampleRead,
    PredictionHorizon,
    PredictionType,
    TrendAnalysis,
    TrendPrediction,
    TrendType,
)
from community_analytics.trends.service import TrendPredictionService


router = APIRouter()

TREND_SERVICE = Depends(trend_service_dependency)


class TrendAnalysisRequest(BaseModel):
    """Request model for trend classification."""

    time_period: TimePeriod = Field("week", description="Analysis window")
    trend_types: Optional[list[TrendType]] = Field(
        None, description="Dimensions to analyze, all if omitted"
    )


class PredictionRequest(BaseModel):
    """Request model for forecasting a metric."""

    prediction_type: PredictionType = Field(
        ..., description="Metric name to forecast"
    )
    horizon: PredictionHorizon = Field("short", description="Forecast horizon")


class ActualValueRequest(BaseModel):
    """Request model for reconciling a forecast."""

    actual_value: float = Field(..., description="Observed value")


@router.post(
    "/analyze",
    response_model=list[TrendAnalysis],
    summary="Classify community trends",
)
async def analyze_trends(
    request: TrendAnalysisRequest,
    service: TrendPredictionService = TREND_SERVICE,
) -> list[TrendAnalysis]:
    return await service.analyze_trends(request.time_period, request.trend_types)


@router.post(
    "/predictions",
    response_model=list[TrendPrediction],
    summary="Forecast a community metric",
    description=(
        "Run the linear, weekly seasonal and compound growth forecasts over "
        "the last three months of the metric. Methods without enough history "
        "are skipped."
    ),
)
async def generate_predictions(
    request: PredictionRequest,
    service: TrendPredictionService = TREND_SERVICE,
) -> list[TrendPrediction]:
    return await service.generate_predictions(
        request.prediction_type, request.horizon
    )


@router.put(
    "/predictions/{prediction_id}/actual",
    response_model=TrendPrediction,
    summary="Record the observed value of a forecast",
)
async def reconcile_prediction(
    prediction_id: uuid.UUID,
    request: ActualValueRequest,
    service: TrendPredictionService = TREND_SERVICE,
) -> TrendPrediction:
    return await service.reconcile_prediction(prediction_id, request.actual_value)


@router.post(
    "/metrics",
    response_model=MetricSampleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record a metric observation",
)
async def record_metric(
    sample: MetricSampleCreate,
    service: TrendPredictionService = TREND_SERVICE,
) -> MetricSampleRead:
    return await service.record_metric(sample)
