"""
Trend classification and forecasting of community metrics.
"""

from community_analytics.trends.predictor import TrendPredictor
from community_analytics.trends.service import TrendPredictionService
