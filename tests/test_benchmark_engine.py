"""Tests for the Benchmark Engine."""

import pytest
from datetime import datetime, timedelta, timezone

from workflow_analytics.analytics.benchmark_engine import TRACKED_METRICS, BenchmarkEngine
from workflow_analytics.analytics.data_source import InMemoryDataSource
from workflow_analytics.analytics.query_gate import build_filter
from workflow_analytics.config import AnalyticsSettings
from workflow_analytics.models.core import (
    CodeReviewRecord,
    DelegationEvent,
    ReviewStatus,
    TaskRecord,
    TaskStatus,
)
from workflow_analytics.models.metrics import BaselineKind, Significance, TrendDirection


BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def task(task_id, day, completed=False):
    created = BASE + timedelta(days=day)
    return TaskRecord(
        id=task_id,
        status=TaskStatus.COMPLETED if completed else TaskStatus.IN_PROGRESS,
        creation_time=created,
        completion_time=created + timedelta(hours=12) if completed else None,
    )


@pytest.fixture
def engine():
    return BenchmarkEngine(AnalyticsSettings())


class TestBenchmarkFormulas:
    """Test suite for comparison, percentile and significance formulas."""

    def test_compare_to_baseline(self, engine):
        assert engine.compare_to_baseline(110, 100) == pytest.approx(10.0)
        assert engine.compare_to_baseline(50, 100) == pytest.approx(-50.0)

    def test_compare_to_zero_baseline(self, engine):
        """Test a zero baseline yields 0 instead of a division error."""
        assert engine.compare_to_baseline(42, 0) == 0

    @pytest.mark.parametrize("value,baseline,lower_is_better,expected", [
        (100, 100, False, 75.0),
        (200, 100, False, 100.0),
        (0, 100, False, 50.0),
        (50, 100, True, 87.5),
        (1000, 100, False, 100.0),
        (1000, 100, True, 0.0),
        (10, 0, False, 75.0),
    ])
    def test_percentile_score(self, engine, value, baseline, lower_is_better, expected):
        """Test percentile scoring around the baseline."""
        assert engine.percentile_score(value, baseline, lower_is_better) == pytest.approx(expected)

    @pytest.mark.parametrize("delta,expected", [
        (0, Significance.LOW), (-4.9, Significance.LOW), (5, Significance.MEDIUM),
        (-14.9, Significance.MEDIUM), (15, Significance.HIGH), (-80, Significance.HIGH),
    ])
    def test_significance(self, engine, delta, expected):
        assert engine.significance(delta) == expected

    def test_direction_honours_lower_is_better(self, engine):
        assert engine.direction(10) == TrendDirection.IMPROVING
        assert engine.direction(10, lower_is_better=True) == TrendDirection.DECLINING
        assert engine.direction(-10, lower_is_better=True) == TrendDirection.IMPROVING
        assert engine.direction(0) == TrendDirection.STABLE


class TestBenchmarkSet:
    """Test suite for building benchmark sets."""

    def test_every_tracked_metric_has_an_entry(self, engine):
        """Test entries cover all metrics, including those without a current value."""
        benchmarks = engine.build_benchmark_set({"completion_rate": 80})

        assert [entry.metric for entry in benchmarks.entries] == [metric for metric, _ in TRACKED_METRICS]
        assert benchmarks.get("task_volume").current_value == 0
        assert benchmarks.get("task_volume").comparisons == ()

    def test_metric_missing_from_current_period_is_not_compared(self, engine):
        """Test a period without completed tasks is not scored against the completion-time target."""
        benchmarks = engine.build_benchmark_set(
            current={"completion_rate": 0.0, "task_volume": 3.0},
            previous={"avg_completion_time_hours": 30.0},
        )

        assert benchmarks.get("avg_completion_time_hours").comparisons == ()
        assert benchmarks.get("completion_rate").comparison_for(BaselineKind.FIXED_TARGET) is not None

    def test_comparisons_per_baseline(self, engine):
        """Test one comparison per available baseline."""
        benchmarks = engine.build_benchmark_set(
            current={"completion_rate": 80.0},
            previous={"completion_rate": 100.0},
            team_historical={"completion_rate": 80.0},
        )

        entry = benchmarks.get("completion_rate")
        previous = entry.comparison_for(BaselineKind.PREVIOUS_PERIOD)
        assert previous.percent_delta == pytest.approx(-20.0)
        assert previous.direction == TrendDirection.DECLINING
        assert previous.significance == Significance.HIGH
        assert entry.comparison_for(BaselineKind.TEAM_HISTORICAL).percent_delta == 0
        fixed = entry.comparison_for(BaselineKind.FIXED_TARGET)
        assert fixed.baseline_value == 78.0

    def test_missing_baselines_are_skipped(self, engine):
        """Test metrics without a baseline value get no comparison for it."""
        benchmarks = engine.build_benchmark_set(
            current={"task_volume": 12, "completion_rate": 40},
            previous={"completion_rate": 50},
        )

        assert benchmarks.get("task_volume").comparisons == ()
        assert benchmarks.get("completion_rate").comparison_for(BaselineKind.PREVIOUS_PERIOD) is not None

    def test_lower_is_better_metric(self, engine):
        """Test faster completion than the fixed target counts as improving."""
        benchmarks = engine.build_benchmark_set(current={"avg_completion_time_hours": 24.0})

        fixed = benchmarks.get("avg_completion_time_hours").comparison_for(BaselineKind.FIXED_TARGET)
        assert fixed.percent_delta == pytest.approx(-50.0)
        assert fixed.direction == TrendDirection.IMPROVING
        assert fixed.percentile_score == pytest.approx(87.5)

    def test_period_snapshot_only_contains_supported_metrics(self, engine):
        """Test snapshots omit metrics without underlying records."""
        snapshot = engine.period_snapshot([task("a", 0, completed=True), task("b", 0)])

        assert snapshot == {"completion_rate": 50.0, "task_volume": 2.0, "avg_completion_time_hours": 12.0}
        assert engine.period_snapshot([]) == {}

    def test_period_snapshot_rates(self, engine):
        delegations = [
            DelegationEvent(task_ref="a", from_role="x", to_role="y", timestamp=BASE, success=s)
            for s in (True, True, False, True)
        ]
        reviews = [
            CodeReviewRecord(task_ref="a", status=status, created_at=BASE, updated_at=BASE)
            for status in (ReviewStatus.APPROVED, ReviewStatus.NEEDS_CHANGES)
        ]

        snapshot = engine.period_snapshot([], delegations, reviews)

        assert snapshot == {"delegation_success_rate": 75.0, "approval_rate": 50.0}

    def test_average_snapshots(self, engine):
        averaged = engine.average_snapshots([{"completion_rate": 100}, {"completion_rate": 50}, {}])

        assert averaged == {"completion_rate": 75.0}


class TestBenchmarkPeriods:
    """Test suite for fetching benchmark periods from a data source."""

    @pytest.fixture
    def source(self):
        return InMemoryDataSource(tasks=[
            # current period: days 28-35
            task("c1", 29, completed=True), task("c2", 30, completed=True), task("c3", 31), task("c4", 32),
            # previous period: days 21-28
            task("p1", 23, completed=True), task("p2", 24, completed=True),
            # two periods back: days 14-21
            task("h1", 16, completed=True),
        ])

    @pytest.mark.asyncio
    async def test_previous_period_is_shifted_by_one_period(self, engine, source):
        """Test the previous-period baseline uses an equal-length window."""
        predicate = build_filter(date_range=(BASE + timedelta(days=28), BASE + timedelta(days=35)))

        benchmarks = await engine.benchmark(source, predicate)

        completion = benchmarks.get("completion_rate")
        assert completion.current_value == 50.0
        previous = completion.comparison_for(BaselineKind.PREVIOUS_PERIOD)
        assert previous.baseline_value == 100.0
        assert previous.percent_delta == pytest.approx(-50.0)
        historical = completion.comparison_for(BaselineKind.TEAM_HISTORICAL)
        assert historical.baseline_value == 100.0
        volume = benchmarks.get("task_volume").comparison_for(BaselineKind.PREVIOUS_PERIOD)
        assert volume.baseline_value == 2.0

    @pytest.mark.asyncio
    async def test_unbounded_range_uses_fixed_targets_only(self, engine, source):
        """Test only fixed targets are compared without a bounded date range."""
        benchmarks = await engine.benchmark(source, build_filter())

        completion = benchmarks.get("completion_rate")
        assert [c.baseline_kind for c in completion.comparisons] == [BaselineKind.FIXED_TARGET]
        assert completion.current_value == pytest.approx(500 / 7)

    @pytest.mark.asyncio
    async def test_empty_current_period_has_no_comparisons(self, engine, source):
        """Test a period without records is not reported as a decline."""
        predicate = build_filter(date_range=(BASE + timedelta(days=42), BASE + timedelta(days=49)))

        benchmarks = await engine.benchmark(source, predicate)

        assert all(entry.comparisons == () for entry in benchmarks.entries)
        assert benchmarks.get("completion_rate").current_value == 0
