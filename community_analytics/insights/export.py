import csv
import io
from datetime import datetime

from community_analytics.insights.schemas import CommunityInsights


CSV_HEADER = ["Metric", "Value", "Type", "Timestamp"]


def insights_to_csv(insights: CommunityInsights, timestamp: datetime) -> str:
    """Flatten the headline figures of a report into CSV rows."""
    stamp = timestamp.isoformat()
    sentiment = insights.sentiment_analysis
    metrics = insights.community_metrics

    rows = [
        ("Average Sentiment", sentiment.average_sentiment, "sentiment"),
        ("Total Analyses", sentiment.total_analyses, "count"),
        ("Total Posts", metrics.total_posts, "count"),
        ("Total Comments", metrics.total_comments, "count"),
        ("Total Users", metrics.total_users, "count"),
        ("Engagement Rate", metrics.engagement_rate, "percentage"),
        ("Growth Rate", metrics.growth_rate, "percentage"),
    ]

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for name, value, kind in rows:
        writer.writerow([name, value, kind, stamp])

    return buffer.getvalue().rstrip("\n")
