import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from community_analytics.utils import utcnow


class SentimentRecord(SQLModel, table=True):
    """One scored unit of community content. Append-only."""

    __tablename__ = "community_sentiment"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    content_id: str = Field(index=True)
    content_type: str = Field(index=True)  # post, comment, news, discussion
    sentiment_score: float  # -1 to +1
    sentiment_label: str = Field(index=True)  # positive, negative, neutral
    confidence_score: float
    analysis_metadata: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON)
    )
    created_at: datetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime
    )
