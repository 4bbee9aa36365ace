"""
Numeric routines shared by the trend classifier and the forecasters.

All functions take plain sequences of floats in the order the caller wants
them interpreted and never raise on short input; callers gate on length.
"""

import math
from collections.abc import Sequence
from datetime import datetime
from typing import Optional

import numpy as np

from community_analytics.constants import Thresholds
from community_analytics.utils import clamp


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def population_variance(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float)))


def ols_slope(values: Sequence[float]) -> float:
    """Least-squares slope of `values` against their index."""
    n = len(values)
    if n < 2:
        return 0.0

    y = np.asarray(values, dtype=float)
    x = np.arange(n, dtype=float)

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    return float((n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x))


def r_squared(values: Sequence[float], slope: float) -> float:
    """
    Coefficient of determination of the line through the centroid with
    `slope`, clamped to [0, 1].

    A series with no variance is fitted exactly by a flat line and scores 1.
    """
    n = len(values)
    if n < 2:
        return 0.0

    y = np.asarray(values, dtype=float)
    x = np.arange(n, dtype=float)
    fitted = slope * (x - x.mean()) + y.mean()

    ss_res = float(((y - fitted) ** 2).sum())
    ss_tot = float(((y - y.mean()) ** 2).sum())

    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0

    return clamp(1 - ss_res / ss_tot, 0.0, 1.0)


def trend_score(values: Sequence[float]) -> float:
    """Slope normalized by the magnitude of the series mean."""
    if len(values) < 2:
        return 0.0

    avg = mean(values)
    if avg == 0:
        return 0.0
    return ols_slope(values) / abs(avg)


def trend_direction(score: float) -> str:
    if score > Thresholds.TREND_DIRECTION:
        return "rising"
    if score < -Thresholds.TREND_DIRECTION:
        return "falling"
    return "stable"


def day_of_week(moment: datetime) -> int:
    """Day of week with Sunday as 0."""
    return (moment.weekday() + 1) % 7


def weekly_pattern(
    values: Sequence[float], timestamps: Sequence[datetime]
) -> list[float]:
    """Mean value per day of week, 0 for days without observations."""
    totals = [0.0] * 7
    counts = [0] * 7

    for value, moment in zip(values, timestamps):
        day = day_of_week(moment)
        totals[day] += value
        counts[day] += 1

    return [
        totals[day] / counts[day] if counts[day] else 0.0 for day in range(7)
    ]


def seasonal_confidence(pattern: Sequence[float]) -> float:
    """One minus the coefficient of variation of the weekly means."""
    avg = mean(pattern)
    if avg == 0:
        return 0.0

    variation = math.sqrt(population_variance(pattern)) / abs(avg)
    return clamp(1 - variation, 0.0, 1.0)


def compound_growth_rate(recent_first: Sequence[float]) -> Optional[float]:
    """
    Per-period rate between the oldest and newest observation.

    `recent_first` holds the most recent value at index 0. Returns None when
    the rate is undefined (a zero newest value or a sign change).
    """
    n = len(recent_first)
    if n < 2:
        return 0.0

    newest = recent_first[0]
    oldest = recent_first[-1]
    if newest == 0:
        return None

    ratio = oldest / newest
    if ratio < 0:
        return None

    rate = ratio ** (1 / n) - 1
    if not math.isfinite(rate):
        return None
    return rate


def growth_confidence(recent_first: Sequence[float], rate: float) -> float:
    """
    Fit ``oldest * (1 + rate) ** i`` back over the series and score it by
    one minus the mean squared error normalized by the squared mean.
    """
    if len(recent_first) < 3:
        return 0.0

    actual = np.asarray(recent_first, dtype=float)
    steps = np.arange(len(actual), dtype=float)
    fitted = actual[-1] * np.power(1 + rate, steps)

    mse = float(((actual - fitted) ** 2).mean())
    avg = float(actual.mean())
    if avg == 0 or not math.isfinite(mse):
        return 0.0

    return clamp(1 - mse / (avg * avg), 0.0, 1.0)
