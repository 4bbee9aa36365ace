import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from community_analytics.utils import utcnow


class MetricSample(SQLModel, table=True):
    """Observation of a named scalar community metric. Append-only."""

    __tablename__ = "community_analytics"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    metric_name: str = Field(index=True)
    metric_value: float
    metric_type: str = Field(default="count")  # count, rate, percentage, score, trend
    time_period: str = Field(index=True)  # hourly, daily, weekly, monthly, yearly
    geographic_scope: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON)
    )
    demographic_scope: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON)
    )
    calculated_at: datetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime
    )
    # "metadata" is reserved on declarative classes
    meta: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )


class CommunityPrediction(SQLModel, table=True):
    """Persisted forecast, reconciled later against the observed value."""

    __tablename__ = "community_predictions"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    prediction_type: str = Field(index=True)
    prediction_target: str
    predicted_value: float
    confidence_score: float
    prediction_horizon: str  # short, medium, long
    prediction_date: datetime = Field(sa_type=DateTime)
    actual_value: Optional[float] = Field(default=None)
    accuracy_score: Optional[float] = Field(default=None)
    model_version: str
    meta: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )
    created_at: datetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime
    )


class CommunityTrend(SQLModel, table=True):
    """Persisted trend classification over a time window."""

    __tablename__ = "community_trends"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    trend_type: str = Field(index=True)
    trend_name: str
    trend_description: Optional[str] = Field(default=None)
    trend_score: float
    trend_direction: str  # rising, falling, stable
    confidence_level: float
    geographic_scope: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON)
    )
    time_period_start: datetime = Field(sa_type=DateTime)
    time_period_end: datetime = Field(sa_type=DateTime)
    meta: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )
    created_at: datetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime
    )
