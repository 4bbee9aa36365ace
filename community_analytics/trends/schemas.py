import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


PredictionType = Literal["engagement", "growth", "sentiment", "trend", "event"]
PredictionHorizon = Literal["short", "medium", "long"]
TrendType = Literal["topic", "sentiment", "engagement", "location", "demographic"]
TrendDirection = Literal["rising", "falling", "stable"]
MetricType = Literal["count", "rate", "percentage", "score", "trend"]


class TrendPrediction(BaseModel):
    """Forecast produced by one of the prediction methods."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: Optional[uuid.UUID] = None
    prediction_type: PredictionType
    prediction_target: str  # "<type>_trend", "<type>_seasonal", "<type>_growth"
    predicted_value: float
    confidence_score: float  # 0 to 1
    prediction_horizon: PredictionHorizon
    prediction_date: datetime
    actual_value: Optional[float] = None
    accuracy_score: Optional[float] = None
    model_version: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class TrendAnalysis(BaseModel):
    """Direction and strength of one community trend over a window."""

    model_config = ConfigDict(from_attributes=True)

    trend_type: TrendType
    trend_name: str
    trend_description: Optional[str] = None
    trend_score: float
    trend_direction: TrendDirection
    confidence_level: float
    geographic_scope: dict[str, Any] = Field(default_factory=dict)
    time_period_start: datetime
    time_period_end: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)


class MetricSampleCreate(BaseModel):
    """New observation of a named community metric."""

    metric_name: str
    metric_value: float
    metric_type: MetricType = "count"
    time_period: str = "daily"
    geographic_scope: dict[str, Any] = Field(default_factory=dict)
    demographic_scope: dict[str, Any] = Field(default_factory=dict)
    calculated_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MetricSampleRead(MetricSampleCreate):
    id: uuid.UUID
    calculated_at: datetime
