import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Optional, Protocol

from community_analytics.constants import HORIZON_DAYS
from community_analytics.trends import statistics as stats
from community_analytics.trends.schemas import (
    PredictionHorizon,
    PredictionType,
    TrendPrediction,
)
from community_analytics.utils import utcnow


logger = logging.getLogger(__name__)

MIN_TREND_POINTS = 2
MIN_SEASONAL_POINTS = 7
MIN_GROWTH_POINTS = 3

# Growth rates are treated as monthly rates
GROWTH_PERIOD_DAYS = 30


class Observation(Protocol):
    metric_value: float
    calculated_at: datetime


class TrendPredictor:
    """
    Forecasts a metric series with three independent methods.

    Every method runs on each call and contributes at most one prediction;
    a method without enough observations contributes nothing.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def predict(
        self,
        series: Sequence[Observation],
        prediction_type: PredictionType,
        horizon: PredictionHorizon = "short",
    ) -> list[TrendPrediction]:
        """
        Forecast `series` over `horizon`.

        Args:
            series: Observations ordered oldest first
            prediction_type: Kind of metric being forecast
            horizon: "short" (7d), "medium" (30d) or "long" (90d)

        Returns:
            list[TrendPrediction]: Zero to three predictions
        """
        now = self.clock()
        predictions = [
            prediction
            for prediction in (
                self.linear_trend(series, prediction_type, horizon, now),
                self.weekly_seasonal(series, prediction_type, horizon, now),
                self.compound_growth(series, prediction_type, horizon, now),
            )
            if prediction is not None
        ]

        logger.debug(
            "Produced %s %s predictions from %s observations",
            len(predictions),
            prediction_type,
            len(series),
        )

        return predictions

    def linear_trend(
        self,
        series: Sequence[Observation],
        prediction_type: PredictionType,
        horizon: PredictionHorizon,
        now: Optional[datetime] = None,
    ) -> Optional[TrendPrediction]:
        if len(series) < MIN_TREND_POINTS:
            return None

        now = now or self.clock()
        days = HORIZON_DAYS[horizon]
        values = [s.metric_value for s in series]

        slope = stats.ols_slope(values)
        average = stats.mean(values)

        return TrendPrediction(
            prediction_type=prediction_type,
            prediction_target=f"{prediction_type}_trend",
            predicted_value=average + slope * days,
            confidence_score=stats.r_squared(values, slope),
            prediction_horizon=horizon,
            prediction_date=now + timedelta(days=days),
            model_version="trend_v1.0",
            metadata={
                "trend_slope": slope,
                "historical_average": average,
                "data_points": len(values),
            },
        )

    def weekly_seasonal(
        self,
        series: Sequence[Observation],
        prediction_type: PredictionType,
        horizon: PredictionHorizon,
        now: Optional[datetime] = None,
    ) -> Optional[TrendPrediction]:
        if len(series) < MIN_SEASONAL_POINTS:
            return None

        now = now or self.clock()
        days = HORIZON_DAYS[horizon]

        pattern = stats.weekly_pattern(
            [s.metric_value for s in series],
            [s.calculated_at for s in series],
        )
        target_day = (stats.day_of_week(now) + days) % 7

        return TrendPrediction(
            prediction_type=prediction_type,
            prediction_target=f"{prediction_type}_seasonal",
            predicted_value=pattern[target_day],
            confidence_score=stats.seasonal_confidence(pattern),
            prediction_horizon=horizon,
            prediction_date=now + timedelta(days=days),
            model_version="seasonal_v1.0",
            metadata={
                "weekly_pattern": pattern,
                "target_day_of_week": target_day,
            },
        )

    def compound_growth(
        self,
        series: Sequence[Observation],
        prediction_type: PredictionType,
        horizon: PredictionHorizon,
        now: Optional[datetime] = None,
    ) -> Optional[TrendPrediction]:
        if len(series) < MIN_GROWTH_POINTS:
            return None

        now = now or self.clock()
        days = HORIZON_DAYS[horizon]

        # Index 0 is the most recent observation
        recent_first = [s.metric_value for s in reversed(series)]
        rate = stats.compound_growth_rate(recent_first)
        if rate is None:
            logger.debug(
                "Growth rate undefined for %s series, skipping", prediction_type
            )
            return None

        current = recent_first[0]
        periods = days / GROWTH_PERIOD_DAYS

        return TrendPrediction(
            prediction_type=prediction_type,
            prediction_target=f"{prediction_type}_growth",
            predicted_value=current * (1 + rate) ** periods,
            confidence_score=stats.growth_confidence(recent_first, rate),
            prediction_horizon=horizon,
            prediction_date=now + timedelta(days=days),
            model_version="growth_v1.0",
            metadata={
                "growth_rate": rate,
                "current_value": current,
                "compound_periods": periods,
            },
        )
