"""Tests for the Trend Analyzer."""

import math
import pytest
from datetime import datetime, timedelta, timezone

from workflow_analytics.analytics.trend_analyzer import TrendAnalyzer, week_over_week_change, week_windows
from workflow_analytics.config import AnalyticsSettings
from workflow_analytics.models.core import TaskRecord, TaskStatus
from workflow_analytics.models.metrics import TrendDirection, TrendSeries


BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def task(task_id, created_day, completed_day=None):
    return TaskRecord(
        id=task_id,
        status=TaskStatus.COMPLETED if completed_day is not None else TaskStatus.IN_PROGRESS,
        creation_time=BASE + timedelta(days=created_day),
        completion_time=BASE + timedelta(days=completed_day) if completed_day is not None else None,
    )


@pytest.fixture
def analyzer():
    return TrendAnalyzer(AnalyticsSettings())


class TestCorrelate:
    """Test suite for Pearson correlation."""

    def test_series_correlates_with_itself(self, analyzer):
        """Test correlate(s, s) = 1 for a non-constant series."""
        series = [3.0, 1.0, 4.0, 1.0, 5.0, 9.0]

        assert analyzer.correlate(series, series) == pytest.approx(1.0)

    def test_constant_series(self, analyzer):
        """Test a constant series correlates to 0, not NaN."""
        result = analyzer.correlate([2, 2, 2, 2], [1, 2, 3, 4])

        assert result == 0
        assert not math.isnan(result)

    def test_inverse_series(self, analyzer):
        assert analyzer.correlate([1, 2, 3], [6, 4, 2]) == pytest.approx(-1.0)

    def test_unequal_lengths_truncate(self, analyzer):
        """Test the longer series is truncated to the shorter one."""
        assert analyzer.correlate([1, 2, 3, 100], [2, 4, 6]) == pytest.approx(1.0)

    def test_too_few_points(self, analyzer):
        assert analyzer.correlate([1], [1]) == 0
        assert analyzer.correlate([], []) == 0

    def test_accepts_trend_series(self, analyzer):
        series = TrendSeries.from_pairs(["a", "b", "c"], [1, 5, 2])

        assert analyzer.correlate(series, [1, 5, 2]) == pytest.approx(1.0)


class TestFitAndPredict:
    """Test suite for linear trend fitting and prediction."""

    def test_fit_exact_line(self, analyzer):
        """Test OLS reproduces a perfect line."""
        assert analyzer.fit_linear_trend([1, 3, 5, 7]) == pytest.approx((1, 3, 5, 7))

    def test_fit_noisy_values(self, analyzer):
        """Test closed-form slope and intercept."""
        fitted = analyzer.fit_linear_trend([2, 4, 3])

        assert fitted == pytest.approx((2.5, 3.0, 3.5))

    def test_fit_degenerate_inputs(self, analyzer):
        assert analyzer.fit_linear_trend([]) == ()
        assert analyzer.fit_linear_trend([4]) == (4.0,)

    def test_predict_zero_periods(self, analyzer):
        """Test predict(series, 0) is empty."""
        assert len(analyzer.predict([1, 2, 3], 0)) == 0

    def test_predict_needs_two_points(self, analyzer):
        """Test predict with fewer than two points is empty."""
        assert len(analyzer.predict([5], 3)) == 0
        assert len(analyzer.predict([], 3)) == 0

    def test_predict_uses_last_two_points(self, analyzer):
        """Test extrapolation from the slope of the last two observations."""
        prediction = analyzer.predict([10, 1, 3], 2)

        assert prediction.values == (5.0, 7.0)

    def test_predict_labels_continue_weekly(self, analyzer):
        """Test date labels advance by one week per predicted point."""
        series = TrendSeries.from_pairs(["2024-01-01", "2024-01-08"], [10, 20])

        prediction = analyzer.predict(series, 2)

        assert prediction.labels == ("2024-01-15", "2024-01-22")
        assert prediction.values == (30.0, 40.0)

    def test_predict_is_restartable(self, analyzer):
        """Test the same input produces the same series."""
        series = TrendSeries.from_pairs(["w1", "w2"], [1, 2])

        assert analyzer.predict(series, 3) == analyzer.predict(series, 3)
        assert list(analyzer.predict(series, 3)) == list(analyzer.predict(series, 3))


class TestWeeklyBucketing:
    """Test suite for weekly windows and time series analysis."""

    def test_windows_span_the_range(self):
        windows = week_windows(BASE, BASE + timedelta(days=20))

        assert [start for start, _ in windows] == [BASE, BASE + timedelta(days=7), BASE + timedelta(days=14)]

    def test_bucket_by_week_counts_and_empty_windows(self, analyzer):
        """Test each window aggregates independently and empty windows report 0."""
        records = [task("a", 1), task("b", 2), task("c", 15)]

        series = analyzer.bucket_by_week(
            records, (BASE, BASE + timedelta(days=20)), timestamp=lambda t: t.creation_time
        )

        assert series.values == (2.0, 0.0, 1.0)
        assert series.labels == ("2024-01-01", "2024-01-08", "2024-01-15")

    def test_bucket_by_week_custom_aggregate(self, analyzer):
        """Test a custom aggregate over the records of a window."""
        records = [task("a", 1, 3), task("b", 2), task("c", 3, 4)]

        series = analyzer.bucket_by_week(
            records,
            (BASE, BASE + timedelta(days=6)),
            timestamp=lambda t: t.completion_time,
            aggregate=lambda items: sum(t.completion_hours for t in items),
        )

        assert series.values == (72.0,)

    def test_weekly_trends(self, analyzer):
        """Test weekly efficiency is completed over created."""
        tasks = [task("a", 0, 2), task("b", 1), task("c", 8, 9), task("d", 9, 10)]

        weekly = analyzer.weekly_trends(tasks, [], [], (BASE, BASE + timedelta(days=13)))

        assert [w.tasks_created for w in weekly] == [2, 2]
        assert [w.tasks_completed for w in weekly] == [1, 2]
        assert [w.weekly_efficiency for w in weekly] == [50.0, 100.0]
        assert weekly[0].avg_completion_time_hours == 48.0

    def test_time_series_analysis(self, analyzer):
        """Test fitted trend, forecast and week-over-week insights."""
        tasks = [task("a", 0, 2), task("b", 1), task("c", 8, 9), task("d", 9, 10)]

        analysis = analyzer.time_series_analysis(tasks, date_range=(BASE, BASE + timedelta(days=13)))

        assert analysis.efficiency.values == (50.0, 100.0)
        assert analysis.direction == TrendDirection.IMPROVING
        assert analysis.slope == pytest.approx(50.0)
        assert len(analysis.efficiency_forecast) == AnalyticsSettings().prediction_periods
        assert all(0 <= value <= 100 for value in analysis.efficiency_forecast.values)
        efficiency_insight = analysis.insights[0]
        assert efficiency_insight.metric == "weekly_efficiency"
        assert efficiency_insight.change_percent == 100.0
        assert efficiency_insight.actionable is True

    def test_time_series_analysis_without_tasks(self, analyzer):
        """Test no tasks and no range yield the default."""
        analysis = analyzer.time_series_analysis([])

        assert analysis.weekly_trends == ()
        assert analysis.direction == TrendDirection.UNKNOWN

    def test_week_over_week_change_from_zero(self):
        assert week_over_week_change(0, 5) == 100.0
        assert week_over_week_change(0, 0) == 0.0
        assert week_over_week_change(4, 2) == -50.0
