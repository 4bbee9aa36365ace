from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from community_analytics.config import settings
from community_analytics.sentiment.schemas import SentimentSummary
from community_analytics.trends.schemas import TrendAnalysis, TrendPrediction


TimePeriod = Literal["day", "week", "month", "quarter", "year"]
InsightSection = Literal[
    "sentiment", "trends", "predictions", "metrics", "recommendations"
]
ExportFormat = Literal["json", "csv"]

ALL_SECTIONS: list[InsightSection] = [
    "sentiment",
    "trends",
    "predictions",
    "metrics",
    "recommendations",
]


class GeographicScope(BaseModel):
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class DemographicScope(BaseModel):
    age_groups: Optional[list[str]] = None
    interests: Optional[list[str]] = None
    user_types: Optional[list[str]] = None


class AnalyticsConfig(BaseModel):
    """Parameters of a community insights report."""

    time_period: TimePeriod = "week"
    geographic_scope: Optional[GeographicScope] = None
    demographic_scope: Optional[DemographicScope] = None
    enabled_insights: list[InsightSection] = Field(
        default_factory=lambda: list(ALL_SECTIONS)
    )
    # Seconds a computed report may be served from cache, 0 disables caching
    refresh_interval: int = Field(default=settings.INSIGHTS_CACHE_TTL, ge=0)


class CommunityMetrics(BaseModel):
    total_posts: int = 0
    total_comments: int = 0
    total_users: int = 0
    engagement_rate: float = 0.0  # percent
    growth_rate: float = 0.0  # percent vs the preceding window


class Recommendation(BaseModel):
    type: Literal["action", "insight", "warning"]
    title: str
    description: str
    priority: Literal["high", "medium", "low"]
    actionable: bool = True


class CommunityInsights(BaseModel):
    """Composite community report. Sections not requested stay zeroed."""

    sentiment_analysis: SentimentSummary = Field(default_factory=SentimentSummary)
    trend_analysis: list[TrendAnalysis] = Field(default_factory=list)
    predictions: list[TrendPrediction] = Field(default_factory=list)
    community_metrics: CommunityMetrics = Field(default_factory=CommunityMetrics)
    recommendations: list[Recommendation] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
    cached: bool = False
