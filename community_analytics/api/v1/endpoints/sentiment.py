from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from community_analytics.api.dependencies import sentiment_service_dependency
from community_analytics.insights.schemas import TimePeriod
from community_analytics.sentiment.schemas import (
    ContentType,
    SentimentAnalysisOptions,
    SentimentRecordRead,
    SentimentResult,
    SentimentSummary,
    SentimentTrendSummary,
)
from community_analytics.sentiment.service import SentimentAnalysisService


router = APIRouter()

SENTIMENT_SERVICE = Depends(sentiment_service_dependency)


class AnalyzeTextRequest(BaseModel):
    """Request model for scoring a text."""

    text: str = Field(..., description="Text to score")


@router.post(
    "/analyze",
    response_model=SentimentResult,
    summary="Score a text",
    description="Score a text with the sentiment lexicon without storing it.",
)
async def analyze_text(
    request: AnalyzeTextRequest,
    service: SentimentAnalysisService = SENTIMENT_SERVICE,
) -> SentimentResult:
    return service.analyze(request.text)


@router.post(
    "/records",
    response_model=SentimentRecordRead,
    status_code=status.HTTP_201_CREATED,
    summary="Score and store content",
)
async def store_sentiment(
    options: SentimentAnalysisOptions,
    service: SentimentAnalysisService = SENTIMENT_SERVICE,
) -> SentimentRecordRead:
    """
    Score community content and append it to the sentiment log.

    Args:
        options: Content to analyze
        service: Sentiment service

    Returns:
        SentimentRecordRead: Stored record
    """
    record = await service.store_sentiment_analysis(options)
    return SentimentRecordRead.model_validate(record)


@router.get(
    "/summary",
    response_model=SentimentSummary,
    summary="Summarize community sentiment",
)
async def get_sentiment_summary(
    time_period: TimePeriod = Query("week", description="Reporting window"),
    service: SentimentAnalysisService = SENTIMENT_SERVICE,
) -> SentimentSummary:
    return await service.get_community_sentiment_summary(time_period)


@router.get(
    "/trends",
    response_model=SentimentTrendSummary,
    summary="Percentage breakdown of sentiment in a window",
)
async def get_sentiment_trends(
    start: datetime = Query(..., description="Window start (UTC)"),
    end: datetime = Query(..., description="Window end (UTC)"),
    content_type: Optional[ContentType] = Query(None),
    service: SentimentAnalysisService = SENTIMENT_SERVICE,
) -> SentimentTrendSummary:
    return await service.get_sentiment_trends(start, end, content_type)
