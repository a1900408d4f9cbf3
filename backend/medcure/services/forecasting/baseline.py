"""
Baseline demand statistics.

Everything the forecaster needs from raw sale lines:
1. A daily quantity series (missing days filled with zeros)
2. Trailing 7/30/90-day moving averages
3. Demand level and week-over-week trend
4. Variance and a confidence score for the data

No model fitting.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Sequence


class DemandLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECLINING = "declining"


def normalize_timestamp(ts: datetime) -> datetime:
    """Aware timestamps become naive UTC; naive ones are taken as UTC already."""
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


@dataclass(frozen=True)
class SaleObservation:
    """One historical sale line. Append-only input for forecasting."""
    product_id: int
    quantity: int
    timestamp: datetime

    def __post_init__(self):
        object.__setattr__(self, "timestamp", normalize_timestamp(self.timestamp))


@dataclass
class ForecastPoint:
    """Single forecast data point."""
    date: date
    predicted_units: float
    best_case: float
    worst_case: float


TREND_WINDOW_DAYS = 7


class DemandBaseline:
    """
    Daily demand statistics for one product, as seen at `as_of`.
    """

    def __init__(self, observations: Sequence[SaleObservation], as_of: datetime, window_days: int = 90):
        """
        Args:
            observations: Sale lines inside the history window
            as_of: Reference time, the last day of the series
            window_days: Length of the history window
        """
        self.as_of = normalize_timestamp(as_of)
        self.end_date = self.as_of.date()
        self.window_days = window_days
        self.observations = list(observations)
        self.series = self._build_daily_series(max(window_days, 2 * TREND_WINDOW_DAYS))

    def _build_daily_series(self, days: int) -> pd.Series:
        """Sum quantities per day and fill missing days with zeros."""
        index = pd.date_range(end=pd.Timestamp(self.end_date), periods=days, freq='D')
        if not self.observations:
            return pd.Series(0.0, index=index)

        df = pd.DataFrame({
            'date': [o.timestamp for o in self.observations],
            'units_sold': [o.quantity for o in self.observations]
        })
        df['date'] = pd.to_datetime(df['date']).dt.normalize()
        daily = df.groupby('date')['units_sold'].sum()
        return daily.reindex(index, fill_value=0).astype(float)

    @property
    def data_points(self) -> int:
        return len(self.observations)

    @property
    def days_of_data(self) -> int:
        """Days from the first observation up to as_of, inclusive."""
        if not self.observations:
            return 0
        first = min(o.timestamp for o in self.observations).date()
        return max(1, (self.end_date - first).days + 1)

    @property
    def days_since_last_sale(self) -> Optional[int]:
        if not self.observations:
            return None
        last = max(o.timestamp for o in self.observations).date()
        return max(0, (self.end_date - last).days)

    def _observed_tail(self, window: int) -> pd.Series:
        """Last `window` days, cut short when history is shorter."""
        days = min(window, self.days_of_data)
        if days <= 0:
            return self.series.iloc[0:0]
        return self.series.tail(days)

    def moving_average(self, window: int) -> float:
        """Mean daily quantity over the trailing window."""
        tail = self._observed_tail(window)
        if len(tail) == 0:
            return 0.0
        return float(tail.sum() / len(tail))

    def demand_variance(self, window: int = 30) -> float:
        """Sample variance of daily quantities over the trailing window."""
        tail = self._observed_tail(window)
        if len(tail) < 2:
            return 0.0
        return float(tail.var(ddof=1))

    def coefficient_of_variation(self) -> Optional[float]:
        tail = self._observed_tail(self.window_days)
        if len(tail) == 0:
            return None
        mean = tail.mean()
        if mean <= 0:
            return None
        return float(tail.std(ddof=0) / mean)

    def trend_averages(self) -> tuple:
        """(recent 7-day mean, mean of the 7 days before)."""
        recent = self.series.tail(TREND_WINDOW_DAYS).mean()
        previous = self.series.iloc[-2 * TREND_WINDOW_DAYS:-TREND_WINDOW_DAYS].mean()
        return float(recent), float(previous)


def classify_demand(daily_average: float, high_threshold: float = 10.0, medium_threshold: float = 3.0) -> DemandLevel:
    if daily_average >= high_threshold:
        return DemandLevel.HIGH
    elif daily_average >= medium_threshold:
        return DemandLevel.MEDIUM
    elif daily_average > 0:
        return DemandLevel.LOW
    return DemandLevel.NONE


def trend_percentage(recent_avg: float, previous_avg: float) -> float:
    """
    Relative change of recent vs previous average.
    Zero previous average means no measurable trend.
    """
    if not previous_avg or previous_avg <= 0:
        return 0.0
    return round((recent_avg - previous_avg) / previous_avg, 4)


def classify_trend(pct: float, threshold: float = 0.15) -> TrendDirection:
    if pct >= threshold:
        return TrendDirection.INCREASING
    elif pct <= -threshold:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def confidence_score(
    data_points: int,
    days_since_last_sale: Optional[int],
    coefficient_of_variation: Optional[float],
    target_observations: int = 90,
    recent_days: int = 3,
    stale_days: int = 30
) -> float:
    """
    Weighted data-quality score in [0, 1]:
    - 40% volume: saturates at target_observations
    - 30% recency: full within recent_days, zero from stale_days
    - 30% consistency: 1 / (1 + CV) of daily quantities
    """
    if data_points <= 0:
        return 0.0

    data_points_score = min(data_points / target_observations, 1.0)

    if days_since_last_sale is None or days_since_last_sale >= stale_days:
        recency_score = 0.0
    elif days_since_last_sale <= recent_days:
        recency_score = 1.0
    else:
        recency_score = 1.0 - (days_since_last_sale - recent_days) / (stale_days - recent_days)

    if coefficient_of_variation is None or np.isnan(coefficient_of_variation):
        consistency_score = 0.0
    else:
        consistency_score = 1.0 / (1.0 + coefficient_of_variation)

    score = 0.4 * data_points_score + 0.3 * recency_score + 0.3 * consistency_score
    return round(float(np.clip(score, 0.0, 1.0)), 4)


def forecast_dates(as_of: datetime, horizon: int) -> List[date]:
    start = as_of.date()
    return [start + timedelta(days=i) for i in range(1, horizon + 1)]
