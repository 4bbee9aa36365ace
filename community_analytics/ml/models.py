import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column, DateTime, Index, Text, text
from sqlmodel import Field, SQLModel

from community_analytics.utils import utcnow


class MLModel(SQLModel, table=True):
    """Trained model artifact with its lifecycle state."""

    __tablename__ = "ml_models"
    __table_args__ = (
        # At most one active model per type
        Index(
            "uq_ml_models_active_type",
            "model_type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )
    model_name: str
    # sentiment, trend, prediction, classification, clustering
    model_type: str = Field(index=True)
    model_version: str
    model_data: Optional[str] = Field(
        default=None, sa_column=Column(Text)
    )  # base64 of the encoded parameters
    model_metadata: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON)
    )
    performance_metrics: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON)
    )
    training_data_hash: Optional[str] = Field(default=None)
    is_active: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=utcnow, index=True, sa_type=DateTime
    )
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
