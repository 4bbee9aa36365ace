import uuid
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from community_analytics.sentiment.lexicon import DEFAULT_LEXICON


ModelType = Literal[
    "sentiment", "trend", "prediction", "classification", "clustering"
]


class LexiconRules(BaseModel):
    positive_words: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_LEXICON.positive)
    )
    negative_words: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_LEXICON.negative)
    )
    intensifiers: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_LEXICON.intensifiers)
    )
    negators: list[str] = Field(
        default_factory=lambda: sorted(DEFAULT_LEXICON.negators)
    )


class LexiconWeights(BaseModel):
    positive: float = 1.0
    negative: float = -1.0
    intensifier: float = 1.5  # multiplies the running score
    negator: float = -1.0  # multiplies the running score


class LexiconModelParams(BaseModel):
    """Rule-based sentiment model: word lists plus per-category weights."""

    kind: Literal["lexicon"] = "lexicon"
    version: str = "1.0.0"
    rules: LexiconRules = Field(default_factory=LexiconRules)
    weights: LexiconWeights = Field(default_factory=LexiconWeights)


class LinearModelParams(BaseModel):
    """Linear trend model over named numeric features."""

    kind: Literal["linear"] = "linear"
    version: str = "1.0.0"
    coefficients: list[float]
    intercept: float = 0.0
    features: list[str] = Field(default_factory=list)


ModelParams = Annotated[
    Union[LexiconModelParams, LinearModelParams],
    Field(discriminator="kind"),
]


class ModelTrainingData(BaseModel):
    input_data: list[Any] = Field(default_factory=list)
    target_data: list[Any] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ModelPrediction(BaseModel):
    """Output of replaying the active model of a type on one input."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: uuid.UUID
    input: Any
    prediction: dict[str, Any]
    confidence: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class MLModelRead(BaseModel):
    """Stored model without its parameter blob."""

    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: uuid.UUID
    model_name: str
    model_type: str
    model_version: str
    model_metadata: dict[str, Any] = Field(default_factory=dict)
    performance_metrics: dict[str, Any] = Field(default_factory=dict)
    training_data_hash: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class MetricsUpdate(BaseModel):
    metrics: dict[str, Any]


class PredictionRequest(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict)


class BatchPredictionRequest(BaseModel):
    inputs: list[dict[str, Any]]


class TrainingResult(BaseModel):
    sentiment_model_id: uuid.UUID
    trend_model_id: uuid.UUID
