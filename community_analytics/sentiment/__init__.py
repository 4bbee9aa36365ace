"""
Lexicon sentiment scoring and aggregation of stored sentiment records.
"""

from community_analytics.sentiment.aggregator import SentimentAggregator
from community_analytics.sentiment.models import SentimentRecord
from community_analytics.sentiment.scorer import (
    LexiconSentimentScorer,
    sentiment_label,
)
from community_analytics.sentiment.service import SentimentAnalysisService
