"""
Benchmark Engine.

Compares current-period aggregates against three baselines: the immediately
preceding period of equal length, the average of several earlier periods
(team history) and fixed targets from configuration.
"""

import asyncio
import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import AnalyticsSettings
from ..core.calculations import clamp_percentage, finite, percentage, safe_mean
from ..models.core import CodeReviewRecord, DelegationEvent, ReviewStatus, TaskRecord
from ..models.metrics import (
    BaselineKind,
    BenchmarkComparison,
    BenchmarkEntry,
    BenchmarkSet,
    Significance,
    TrendDirection,
)
from .data_source import RawDataSource
from .query_gate import FilterPredicate


# (metric, lower is better)
TRACKED_METRICS: Tuple[Tuple[str, bool], ...] = (
    ("completion_rate", False),
    ("avg_completion_time_hours", True),
    ("delegation_success_rate", False),
    ("approval_rate", False),
    ("task_volume", False),
)

BASELINE_PERCENTILE = 75.0
PERCENTILE_SPREAD = 25.0
LOW_SIGNIFICANCE_PERCENT = 5.0
MEDIUM_SIGNIFICANCE_PERCENT = 15.0

PeriodSnapshot = Dict[str, float]


class BenchmarkEngine:
    """Current-period metrics benchmarked against historical and target baselines."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None,
                 logger: Optional[logging.Logger] = None):
        self.settings = settings or AnalyticsSettings()
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def compare_to_baseline(current: float, baseline: float) -> float:
        """Percent delta of current against baseline; 0 for a zero baseline."""
        if not baseline:
            return 0.0
        return finite((current - baseline) / baseline * 100)

    @staticmethod
    def percentile_score(value: float, baseline: float, lower_is_better: bool = False) -> float:
        """
        Percentile-style standing of a value relative to a baseline.

        A value equal to the baseline scores 75; every 100% of relative
        deviation moves the score by 25 points, towards 100 when the deviation
        is an improvement. Clamped to [0, 100].
        """
        if not baseline:
            return BASELINE_PERCENTILE
        relative = (value - baseline) / baseline
        if lower_is_better:
            relative = -relative
        return clamp_percentage(BASELINE_PERCENTILE + relative * PERCENTILE_SPREAD)

    @staticmethod
    def significance(percent_delta: float) -> Significance:
        magnitude = abs(percent_delta)
        if magnitude < LOW_SIGNIFICANCE_PERCENT:
            return Significance.LOW
        if magnitude < MEDIUM_SIGNIFICANCE_PERCENT:
            return Significance.MEDIUM
        return Significance.HIGH

    @staticmethod
    def direction(percent_delta: float, lower_is_better: bool = False) -> TrendDirection:
        if percent_delta == 0:
            return TrendDirection.STABLE
        improved = percent_delta < 0 if lower_is_better else percent_delta > 0
        return TrendDirection.IMPROVING if improved else TrendDirection.DECLINING

    @staticmethod
    def period_snapshot(tasks: Sequence[TaskRecord],
                        delegations: Sequence[DelegationEvent] = (),
                        reviews: Sequence[CodeReviewRecord] = ()) -> PeriodSnapshot:
        """
        Tracked metric values of one period.

        Only metrics the records can support are present: a period without
        delegations has no delegation success rate, for example.
        """
        snapshot: PeriodSnapshot = {}
        if tasks:
            completed = [task for task in tasks if task.is_completed]
            snapshot["completion_rate"] = percentage(len(completed), len(tasks))
            snapshot["task_volume"] = float(len(tasks))
            hours = [task.completion_hours for task in completed if task.completion_hours is not None]
            if hours:
                snapshot["avg_completion_time_hours"] = safe_mean(hours)
        if delegations:
            snapshot["delegation_success_rate"] = percentage(
                sum(1 for event in delegations if event.success), len(delegations)
            )
        if reviews:
            snapshot["approval_rate"] = percentage(
                sum(1 for review in reviews if review.status == ReviewStatus.APPROVED), len(reviews)
            )
        return snapshot

    @staticmethod
    def average_snapshots(snapshots: Sequence[Mapping[str, float]]) -> PeriodSnapshot:
        """Per-metric mean over the snapshots that carry the metric."""
        averaged: PeriodSnapshot = {}
        for metric, _ in TRACKED_METRICS:
            values = [snapshot[metric] for snapshot in snapshots if metric in snapshot]
            if values:
                averaged[metric] = safe_mean(values)
        return averaged

    def build_benchmark_set(self,
                            current: Mapping[str, float],
                            previous: Optional[Mapping[str, float]] = None,
                            team_historical: Optional[Mapping[str, float]] = None,
                            fixed_target: Optional[Mapping[str, float]] = None) -> BenchmarkSet:
        """
        Benchmark every tracked metric against each available baseline.

        Args:
            current: Current-period metric values
            previous: Values of the preceding period of equal length
            team_historical: Average values over earlier periods
            fixed_target: Target values; defaults to the configured targets

        Returns:
            One entry per tracked metric. A metric missing from current has
            no comparisons; baselines without a value for the metric are
            skipped.
        """
        if fixed_target is None:
            fixed_target = self.settings.fixed_targets

        baselines = (
            (BaselineKind.PREVIOUS_PERIOD, previous or {}),
            (BaselineKind.TEAM_HISTORICAL, team_historical or {}),
            (BaselineKind.FIXED_TARGET, fixed_target),
        )

        entries = []
        for metric, lower_is_better in TRACKED_METRICS:
            if current.get(metric) is None:
                entries.append(BenchmarkEntry(metric=metric, current_value=0.0, comparisons=()))
                continue

            current_value = finite(current[metric])
            comparisons = []
            for kind, values in baselines:
                if values.get(metric) is None:
                    continue
                baseline_value = finite(values[metric])
                delta = self.compare_to_baseline(current_value, baseline_value)
                comparisons.append(BenchmarkComparison(
                    metric=metric,
                    baseline_kind=kind,
                    current_value=current_value,
                    baseline_value=baseline_value,
                    percent_delta=delta,
                    percentile_score=self.percentile_score(current_value, baseline_value, lower_is_better),
                    significance=self.significance(delta),
                    direction=self.direction(delta, lower_is_better),
                ))
            entries.append(BenchmarkEntry(metric=metric, current_value=current_value,
                                          comparisons=tuple(comparisons)))

        return BenchmarkSet(entries=tuple(entries))

    async def fetch_snapshot(self, data_source: RawDataSource, predicate: FilterPredicate) -> PeriodSnapshot:
        tasks, delegations, reviews = await asyncio.gather(
            data_source.fetch_tasks(predicate),
            data_source.fetch_delegations(predicate),
            data_source.fetch_code_reviews(predicate),
        )
        return self.period_snapshot(tasks, delegations, reviews)

    async def benchmark(self, data_source: RawDataSource, predicate: FilterPredicate) -> BenchmarkSet:
        """
        Fetch the current and baseline periods and build the benchmark set.

        Previous-period and team-historical baselines need a bounded date
        range; without one only fixed targets are compared.
        """
        current = await self.fetch_snapshot(data_source, predicate)
        if predicate.date_range is None:
            self.logger.debug("No bounded date range, benchmarking against fixed targets only")
            return self.build_benchmark_set(current)

        history_periods = self.settings.benchmark_history_periods
        history: List[PeriodSnapshot] = list(await asyncio.gather(*[
            self.fetch_snapshot(data_source, predicate.shifted_back(periods))
            for periods in range(1, history_periods + 1)
        ]))

        previous = history[0]
        team_historical = self.average_snapshots(history)
        self.logger.debug(
            f"Benchmarking against previous period and {history_periods} historical periods"
        )
        return self.build_benchmark_set(current, previous, team_historical)
