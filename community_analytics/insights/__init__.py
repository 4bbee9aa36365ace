"""
Community insights reports composed from sentiment, trends and predictions.
"""

from community_analytics.insights.recommendations import build_recommendations
from community_analytics.insights.service import AnalyticsOrchestrator
