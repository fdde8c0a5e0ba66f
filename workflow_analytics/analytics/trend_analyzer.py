"""
Trend Analyzer.

Buckets records into contiguous weekly windows, fits ordinary-least-squares
trends, extrapolates future points and correlates series. All results are
finite: empty windows report 0 and degenerate inputs yield 0 or an empty
series instead of NaN.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar, Union

import numpy as np

from ..config import AnalyticsSettings
from ..core.calculations import clamp_percentage, finite, percentage, safe_mean
from ..models.core import CodeReviewRecord, DelegationEvent, TaskRecord, as_utc
from ..models.metrics import (
    TimeSeriesAnalysis,
    TrendDirection,
    TrendInsight,
    TrendSeries,
    WeeklyTrend,
)


R = TypeVar("R")
SeriesLike = Union[TrendSeries, Sequence[float]]

WEEK = timedelta(days=7)
# Fitted slope, in value units per week, below which a series counts as flat
STABLE_SLOPE = 1.0
INSIGHT_CHANGE_PERCENT = 5.0
ACTIONABLE_CHANGE_PERCENT = 10.0


def _values(series: SeriesLike) -> List[float]:
    if isinstance(series, TrendSeries):
        return list(series.values)
    return [finite(value) for value in series]


def week_windows(start: datetime, end: datetime) -> List[Tuple[datetime, datetime]]:
    """Contiguous 7-day windows from start until a window would begin after end."""
    windows = []
    window_start, end = as_utc(start), as_utc(end)
    while window_start <= end:
        windows.append((window_start, window_start + WEEK))
        window_start += WEEK
    return windows


def week_over_week_change(previous: float, current: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return finite((current - previous) / previous * 100)


class TrendAnalyzer:
    """Weekly bucketing, linear trend fitting, prediction and correlation."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None,
                 logger: Optional[logging.Logger] = None):
        self.settings = settings or AnalyticsSettings()
        self.logger = logger or logging.getLogger(__name__)

    def bucket_by_week(self,
                       records: Iterable[R],
                       date_range: Tuple[datetime, datetime],
                       timestamp: Callable[[R], Optional[datetime]],
                       aggregate: Callable[[List[R]], float] = len) -> TrendSeries:
        """
        Partition records into weekly windows spanning the date range.

        Args:
            records: Records to bucket
            date_range: Inclusive (start, end) of the analysis period
            timestamp: Extracts the bucketing timestamp of a record; records
                without one are ignored
            aggregate: Reduces the records of one window to a value

        Returns:
            One point per window, labelled with the ISO date of its start
        """
        start, end = date_range
        stamped = [(timestamp(record), record) for record in records]
        stamped = [(as_utc(ts), record) for ts, record in stamped if ts is not None]

        labels = []
        values = []
        for window_start, window_end in week_windows(start, end):
            in_window = [record for ts, record in stamped if window_start <= ts < window_end]
            labels.append(window_start.date().isoformat())
            values.append(finite(aggregate(in_window)) if in_window else 0.0)

        return TrendSeries.from_pairs(labels, values)

    @staticmethod
    def linear_coefficients(values: SeriesLike) -> Tuple[float, float]:
        """Closed-form OLS (slope, intercept) of value against index."""
        y = np.asarray(_values(values), dtype=float)
        if y.size == 0:
            return 0.0, 0.0
        if y.size == 1:
            return 0.0, float(y[0])

        x = np.arange(y.size, dtype=float)
        x_mean = x.mean()
        y_mean = y.mean()
        slope = float(np.sum((x - x_mean) * (y - y_mean)) / np.sum((x - x_mean) ** 2))
        intercept = float(y_mean - slope * x_mean)
        return finite(slope), finite(intercept)

    def fit_linear_trend(self, values: SeriesLike) -> Tuple[float, ...]:
        """Fitted value per index of the OLS trend line."""
        data = _values(values)
        if not data:
            return ()
        slope, intercept = self.linear_coefficients(data)
        fitted = intercept + slope * np.arange(len(data), dtype=float)
        return tuple(finite(value) for value in fitted)

    def predict(self, series: SeriesLike, periods: int) -> TrendSeries:
        """
        Extrapolate future weekly points.

        Uses the slope between the last two observed points. Returns an empty
        series for fewer than two points or a non-positive period count.
        """
        data = _values(series)
        if periods <= 0 or len(data) < 2:
            return TrendSeries()

        step = data[-1] - data[-2]
        last_label = series.labels[-1] if isinstance(series, TrendSeries) else None
        labels = [self._future_label(last_label, offset) for offset in range(1, periods + 1)]
        values = [finite(data[-1] + step * offset) for offset in range(1, periods + 1)]
        return TrendSeries.from_pairs(labels, values)

    @staticmethod
    def _future_label(last_label: Optional[str], offset: int) -> str:
        if last_label:
            try:
                return (date.fromisoformat(last_label) + WEEK * offset).isoformat()
            except ValueError:
                pass
        return f"+{offset}"

    @staticmethod
    def correlate(series_a: SeriesLike, series_b: SeriesLike) -> float:
        """
        Pearson correlation coefficient.

        Series of unequal length are truncated to the shorter one. Returns 0
        when fewer than two points are paired or either series is constant.
        """
        a = _values(series_a)
        b = _values(series_b)
        length = min(len(a), len(b))
        if length < 2:
            return 0.0

        x = np.asarray(a[:length], dtype=float)
        y = np.asarray(b[:length], dtype=float)
        if np.std(x) == 0 or np.std(y) == 0:
            return 0.0

        coefficient = float(np.corrcoef(x, y)[0, 1])
        return max(-1.0, min(1.0, finite(coefficient)))

    def weekly_trends(self,
                      tasks: Sequence[TaskRecord],
                      delegations: Sequence[DelegationEvent],
                      reviews: Sequence[CodeReviewRecord],
                      date_range: Tuple[datetime, datetime]) -> Tuple[WeeklyTrend, ...]:
        """Per-week task, delegation and review aggregates."""
        start, end = date_range
        trends = []
        for window_start, window_end in week_windows(start, end):
            created = [t for t in tasks if window_start <= t.creation_time < window_end]
            completed = [
                t for t in tasks
                if t.is_completed and t.completion_time is not None
                and window_start <= t.completion_time < window_end
            ]
            trends.append(WeeklyTrend(
                week_start=window_start,
                week_end=window_end,
                tasks_created=len(created),
                tasks_completed=len(completed),
                avg_completion_time_hours=safe_mean(t.completion_hours for t in completed),
                delegation_volume=sum(1 for d in delegations if window_start <= d.timestamp < window_end),
                code_reviews=sum(1 for r in reviews if window_start <= r.created_at < window_end),
                weekly_efficiency=percentage(len(completed), len(created)),
            ))
        return tuple(trends)

    def time_series_analysis(self,
                             tasks: Sequence[TaskRecord],
                             delegations: Sequence[DelegationEvent] = (),
                             reviews: Sequence[CodeReviewRecord] = (),
                             date_range: Optional[Tuple[datetime, datetime]] = None) -> TimeSeriesAnalysis:
        """
        Weekly trend analysis of task efficiency.

        Without an explicit date range the analysis spans the creation times
        of the given tasks.
        """
        if date_range is None:
            if not tasks:
                return TimeSeriesAnalysis.empty()
            date_range = (
                min(task.creation_time for task in tasks),
                max(task.creation_time for task in tasks),
            )

        weekly = self.weekly_trends(tasks, delegations, reviews, date_range)
        if not weekly:
            return TimeSeriesAnalysis.empty()

        labels = [week.label for week in weekly]
        efficiency = TrendSeries.from_pairs(labels, [week.weekly_efficiency for week in weekly])
        completions = TrendSeries.from_pairs(labels, [week.tasks_completed for week in weekly])
        volume = [week.tasks_created for week in weekly]

        slope, _ = self.linear_coefficients(efficiency)
        forecast = self.predict(efficiency, self.settings.prediction_periods)
        forecast = TrendSeries.from_pairs(forecast.labels, [clamp_percentage(v) for v in forecast.values])

        self.logger.debug(f"Time series analysis over {len(weekly)} weeks, efficiency slope {slope:.2f}")

        return TimeSeriesAnalysis(
            weekly_trends=weekly,
            efficiency=efficiency,
            efficiency_fit=TrendSeries.from_pairs(
                labels, [clamp_percentage(v) for v in self.fit_linear_trend(efficiency)]
            ),
            efficiency_forecast=forecast,
            completions=completions,
            direction=self._direction(slope, len(weekly)),
            slope=slope,
            volume_efficiency_correlation=self.correlate(volume, efficiency),
            insights=self._insights(weekly),
        )

    @staticmethod
    def _direction(slope: float, points: int) -> TrendDirection:
        if points < 2:
            return TrendDirection.UNKNOWN
        if slope > STABLE_SLOPE:
            return TrendDirection.IMPROVING
        if slope < -STABLE_SLOPE:
            return TrendDirection.DECLINING
        return TrendDirection.STABLE

    def _insights(self, weekly: Sequence[WeeklyTrend]) -> Tuple[TrendInsight, ...]:
        if len(weekly) < 2:
            return ()

        previous, current = weekly[-2], weekly[-1]
        insights = []
        for metric, before, after in (
            ("weekly_efficiency", previous.weekly_efficiency, current.weekly_efficiency),
            ("tasks_completed", previous.tasks_completed, current.tasks_completed),
        ):
            change = week_over_week_change(before, after)
            if change > INSIGHT_CHANGE_PERCENT:
                direction = TrendDirection.IMPROVING
            elif change < -INSIGHT_CHANGE_PERCENT:
                direction = TrendDirection.DECLINING
            else:
                direction = TrendDirection.STABLE

            readable = metric.replace("_", " ").capitalize()
            if direction == TrendDirection.STABLE:
                message = f"{readable} held steady week over week ({change:+.1f}%)"
            else:
                message = f"{readable} {direction.value} by {abs(change):.1f}% week over week"

            insights.append(TrendInsight(
                metric=metric,
                current_value=float(after),
                previous_value=float(before),
                change_percent=change,
                direction=direction,
                message=message,
                actionable=abs(change) > ACTIONABLE_CHANGE_PERCENT,
            ))
        return tuple(insights)
