import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


SentimentLabel = Literal["positive", "negative", "neutral"]
ContentType = Literal["post", "comment", "news", "discussion"]
TrendDirection = Literal["rising", "falling", "stable"]


class SentimentResult(BaseModel):
    """Lexicon sentiment score for a single text."""

    sentiment_score: float  # -1 to +1
    sentiment_label: SentimentLabel
    confidence_score: float  # 0.1 to 1.0


class Location(BaseModel):
    """Free-form location attached to analyzed content."""

    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class SentimentAnalysisOptions(BaseModel):
    """Content submitted for scoring and storage."""

    content_id: str
    content_type: ContentType
    content_text: str
    user_id: Optional[str] = None
    location: Optional[Location] = None


class SentimentDistribution(BaseModel):
    """Label counts."""

    positive: int = 0
    negative: int = 0
    neutral: int = 0


class DailySentiment(BaseModel):
    """Mean sentiment for one UTC calendar date."""

    date: str
    average_sentiment: float
    count: int


class ContentSentiment(BaseModel):
    """A stored sentiment record as surfaced in summaries."""

    model_config = ConfigDict(from_attributes=True)

    content_id: str
    content_type: str
    sentiment_score: float
    sentiment_label: str
    confidence_score: float
    created_at: datetime


class SentimentSummary(BaseModel):
    """Distributional summary over a set of sentiment records."""

    total_analyses: int = 0
    average_sentiment: float = 0.0
    sentiment_distribution: SentimentDistribution = Field(
        default_factory=SentimentDistribution
    )
    sentiment_evolution: list[DailySentiment] = Field(default_factory=list)
    top_positive_content: list[ContentSentiment] = Field(default_factory=list)
    top_negative_content: list[ContentSentiment] = Field(default_factory=list)


class SentimentTrendSummary(BaseModel):
    """Percentage view of sentiment over a window."""

    average_sentiment: float = 0.0
    positive_percentage: float = 0.0
    negative_percentage: float = 0.0
    neutral_percentage: float = 0.0
    trend_direction: TrendDirection = "stable"
    confidence_trend: float = 0.0


class SentimentRecordRead(ContentSentiment):
    """Stored sentiment record returned by the API."""

    id: uuid.UUID
    analysis_metadata: dict[str, Any] = Field(default_factory=dict)
