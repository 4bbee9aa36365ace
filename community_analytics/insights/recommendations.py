"""Threshold rules that turn a computed report into recommendations."""

from community_analytics.constants import Thresholds
from community_analytics.insights.schemas import CommunityInsights, Recommendation


def build_recommendations(insights: CommunityInsights) -> list[Recommendation]:
    """
    Evaluate every rule against `insights`.

    All matching rules contribute, in rule order. The two sentiment rules
    exclude each other, as do the two growth rules.
    """
    recommendations = []
    average_sentiment = insights.sentiment_analysis.average_sentiment
    metrics = insights.community_metrics

    if average_sentiment < Thresholds.NEGATIVE_SENTIMENT_ALERT:
        recommendations.append(
            Recommendation(
                type="warning",
                title="Negative Sentiment Alert",
                description=(
                    "Community sentiment is significantly negative. Consider "
                    "addressing concerns and improving communication."
                ),
                priority="high",
            )
        )
    elif average_sentiment > Thresholds.POSITIVE_COMMUNITY_HEALTH:
        recommendations.append(
            Recommendation(
                type="insight",
                title="Positive Community Health",
                description=(
                    "Community sentiment is very positive. This is a great "
                    "time to introduce new features or initiatives."
                ),
                priority="medium",
            )
        )

    if metrics.growth_rate < Thresholds.DECLINING_GROWTH:
        recommendations.append(
            Recommendation(
                type="warning",
                title="Declining Growth",
                description=(
                    "Community growth has declined significantly. Consider "
                    "reviewing engagement strategies and content quality."
                ),
                priority="high",
            )
        )
    elif metrics.growth_rate > Thresholds.STRONG_GROWTH:
        recommendations.append(
            Recommendation(
                type="insight",
                title="Strong Growth Momentum",
                description=(
                    "Community is experiencing strong growth. Consider scaling "
                    "infrastructure and moderation resources."
                ),
                priority="medium",
            )
        )

    if metrics.engagement_rate < Thresholds.LOW_ENGAGEMENT:
        recommendations.append(
            Recommendation(
                type="action",
                title="Low Engagement Rate",
                description=(
                    "Community engagement is low. Consider creating more "
                    "interactive content, polls, or discussion topics."
                ),
                priority="high",
            )
        )

    rising = [
        t.trend_name
        for t in insights.trend_analysis
        if t.trend_direction == "rising"
    ]
    if rising:
        recommendations.append(
            Recommendation(
                type="insight",
                title="Rising Trends Detected",
                description=(
                    f"Several trends are rising: {', '.join(rising)}. "
                    "Consider creating content around these topics."
                ),
                priority="medium",
            )
        )

    confident = [
        p.prediction_target
        for p in insights.predictions
        if p.confidence_score > Thresholds.HIGH_CONFIDENCE_PREDICTION
    ]
    if confident:
        recommendations.append(
            Recommendation(
                type="insight",
                title="High-Confidence Predictions",
                description=(
                    "Models predict significant changes in "
                    f"{', '.join(confident)}. Prepare accordingly."
                ),
                priority="medium",
            )
        )

    return recommendations
