"""
Global constants for the application.
"""


class CacheKeys:
    """
    Cache key prefixes
    """

    COMMUNITY_INSIGHTS = "community_insights:{fingerprint}"


class ErrorCode:
    """
    Error codes
    """

    NOT_FOUND = "not_found"
    NO_ACTIVE_MODEL = "no_active_model"
    PERSISTENCE_ERROR = "persistence_error"
    VALIDATION_ERROR = "validation_error"


class Thresholds:
    """
    Classification and recommendation thresholds
    """

    SENTIMENT_LABEL = 0.1
    TREND_DIRECTION = 0.1

    NEGATIVE_SENTIMENT_ALERT = -0.2
    POSITIVE_COMMUNITY_HEALTH = 0.3
    DECLINING_GROWTH = -10
    STRONG_GROWTH = 20
    LOW_ENGAGEMENT = 5
    HIGH_CONFIDENCE_PREDICTION = 0.8


HORIZON_DAYS = {"short": 7, "medium": 30, "long": 90}

TREND_DIMENSIONS = ["topic", "sentiment", "engagement", "location", "demographic"]
