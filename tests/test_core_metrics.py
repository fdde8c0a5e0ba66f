"""
Tests for the Core Metrics Calculator.

Covers task, delegation, code review and performance aggregates, the
implementation plan and code review insight extensions, and failure isolation
in compute_bundle.
"""

import math
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from workflow_analytics.analytics.core_metrics import CoreMetricsCalculator
from workflow_analytics.models.core import (
    CodeReviewRecord,
    DelegationEvent,
    ReviewStatus,
    SubtaskRecord,
    SubtaskStatus,
    TaskRecord,
    TaskStatus,
)
from workflow_analytics.models.metrics import DelegationMetrics, TaskMetrics


BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_task(task_id, status=TaskStatus.IN_PROGRESS, hours_to_complete=None, **kwargs):
    creation = kwargs.pop("creation_time", BASE)
    completion = creation + timedelta(hours=hours_to_complete) if hours_to_complete is not None else None
    return TaskRecord(id=task_id, status=status, creation_time=creation, completion_time=completion, **kwargs)


def make_delegation(task_ref, from_role="boomerang", to_role="architect", success=True, **kwargs):
    kwargs.setdefault("timestamp", BASE)
    return DelegationEvent(task_ref=task_ref, from_role=from_role, to_role=to_role, success=success, **kwargs)


def make_review(status, hours=2.0, **kwargs):
    return CodeReviewRecord(
        task_ref=kwargs.pop("task_ref", "t1"),
        status=status,
        created_at=BASE,
        updated_at=BASE + timedelta(hours=hours),
        **kwargs,
    )


class TestTaskMetrics:
    """Test suite for task completion aggregates."""

    @pytest.fixture
    def calculator(self):
        return CoreMetricsCalculator()

    def test_completion_scenario(self, calculator):
        """Test 7 of 10 tasks completed after exactly 24 hours."""
        tasks = [make_task(f"done-{i}", TaskStatus.COMPLETED, hours_to_complete=24) for i in range(7)]
        tasks += [make_task(f"open-{i}") for i in range(3)]

        metrics = calculator.task_metrics(tasks)

        assert metrics.total_tasks == 10
        assert metrics.completed_tasks == 7
        assert metrics.in_progress_tasks == 3
        assert metrics.completion_rate == 70.0
        assert metrics.avg_completion_time_hours == 24.0

    def test_zero_tasks(self, calculator):
        """Test an empty record set yields finite zeros."""
        metrics = calculator.task_metrics([])

        assert metrics.completion_rate == 0
        assert metrics.avg_completion_time_hours == 0
        assert math.isfinite(metrics.completion_rate)
        assert metrics == TaskMetrics.empty()

    def test_completed_without_completion_time_excluded_from_average(self, calculator):
        """Test completed tasks lacking a completion time do not skew the average."""
        tasks = [
            make_task("a", TaskStatus.COMPLETED, hours_to_complete=10),
            make_task("b", TaskStatus.COMPLETED),
        ]

        metrics = calculator.task_metrics(tasks)

        assert metrics.completion_rate == 100.0
        assert metrics.avg_completion_time_hours == 10.0

    def test_distributions_sorted_by_count_then_label(self, calculator):
        """Test distributions are deterministic."""
        tasks = [
            make_task("1", priority="medium"),
            make_task("2", priority="low"),
            make_task("3", priority="high"),
            make_task("4", priority="low"),
            make_task("5", priority="high", owner="alice"),
        ]

        metrics = calculator.task_metrics(tasks)

        assert [(e.label, e.count) for e in metrics.priority_distribution] == [
            ("high", 2), ("low", 2), ("medium", 1)
        ]
        assert [(e.label, e.count) for e in metrics.owner_distribution] == [
            ("unassigned", 4), ("alice", 1)
        ]
        assert metrics.status_distribution[0].label == "in-progress"

    def test_task_metrics_is_pure(self, calculator):
        """Test repeated calls on the same input give identical output."""
        tasks = [
            make_task("a", TaskStatus.COMPLETED, hours_to_complete=5, priority="high"),
            make_task("b", TaskStatus.NEEDS_REVIEW, owner="bob"),
        ]
        snapshot = list(tasks)

        first = calculator.task_metrics(tasks)
        second = calculator.task_metrics(tasks)

        assert first == second
        assert tasks == snapshot


class TestDelegationMetrics:
    """Test suite for delegation aggregates."""

    @pytest.fixture
    def calculator(self):
        return CoreMetricsCalculator()

    def test_success_and_failure_counts(self, calculator):
        """Test 8 successful and 2 failed delegations."""
        events = [make_delegation(f"t{i}") for i in range(8)]
        events += [make_delegation(f"f{i}", success=False, rejection_reason="unclear") for i in range(2)]

        metrics = calculator.delegation_metrics(events)

        assert metrics.total_delegations == 10
        assert metrics.successful_delegations == 8
        assert metrics.failed_delegations == 2
        assert metrics.success_rate == 80.0

    def test_redelegation_counts_average_over_all_tasks(self, calculator):
        """Test redelegations are averaged over every task, not only delegated ones."""
        tasks = [make_task(f"t{i}") for i in range(8)]
        tasks += [make_task(f"r{i}", redelegation_count=2) for i in range(2)]
        events = [make_delegation("r0", redelegation_count=2), make_delegation("r1", redelegation_count=2)]

        metrics = calculator.delegation_metrics(events, tasks)

        assert metrics.avg_redelegation_count == pytest.approx(0.4)
        assert metrics.max_redelegation_count == 2

    def test_redelegation_counts_without_tasks(self, calculator):
        metrics = calculator.delegation_metrics([make_delegation("a", redelegation_count=3)])

        assert metrics.avg_redelegation_count == 0
        assert metrics.max_redelegation_count == 0

    def test_top_failure_reasons_are_ranked_deterministically(self, calculator):
        """Test failure reasons sort by count, then reason text, limited to five."""
        reasons = ["scope", "blocked", "blocked", "access", "access", None, "deps", "tests", "docs"]
        events = [make_delegation(f"t{i}", success=False, rejection_reason=r) for i, r in enumerate(reasons)]
        events.append(make_delegation("ok", rejection_reason="ignored"))

        metrics = calculator.delegation_metrics(events)

        assert [(r.reason, r.count) for r in metrics.top_failure_reasons] == [
            ("access", 2), ("blocked", 2), ("deps", 1), ("docs", 1), ("scope", 1)
        ]
        assert calculator.delegation_metrics(events[5:6]).top_failure_reasons == ()

    def test_mode_transitions(self, calculator):
        """Test per-role-pair transition counts."""
        events = [
            make_delegation("a", "boomerang", "architect"),
            make_delegation("b", "architect", "senior-developer"),
            make_delegation("c", "boomerang", "architect"),
        ]

        metrics = calculator.delegation_metrics(events)

        assert metrics.mode_transitions[0].label == "boomerang → architect"
        assert metrics.mode_transitions[0].count == 2
        assert len(metrics.mode_transitions) == 2

    def test_empty_events(self, calculator):
        """Test no delegations produce the default."""
        assert calculator.delegation_metrics([]) == DelegationMetrics.empty()


class TestCodeReviewAndPerformance:
    """Test suite for review and performance aggregates."""

    @pytest.fixture
    def calculator(self):
        return CoreMetricsCalculator()

    def test_code_review_metrics(self, calculator):
        """Test approval rate and average review time."""
        reviews = [
            make_review(ReviewStatus.APPROVED, hours=2),
            make_review(ReviewStatus.APPROVED, hours=4),
            make_review(ReviewStatus.NEEDS_CHANGES, hours=6),
            make_review(ReviewStatus.PENDING, hours=0),
        ]

        metrics = calculator.code_review_metrics(reviews)

        assert metrics.total_reviews == 4
        assert metrics.approved_reviews == 2
        assert metrics.needs_changes_reviews == 1
        assert metrics.pending_reviews == 1
        assert metrics.approval_rate == 50.0
        assert metrics.avg_review_time_hours == 3.0

    def test_most_and_least_active_modes_prefer_first_encountered(self, calculator):
        """Test activity ties resolve to the first role encountered."""
        delegations = [
            make_delegation("a", to_role="architect"),
            make_delegation("a", to_role="developer"),
            make_delegation("b", to_role="developer"),
            make_delegation("b", to_role="architect"),
            make_delegation("c", to_role="reviewer"),
        ]

        metrics = calculator.performance_metrics([], delegations, [])

        assert metrics.most_active_mode == "architect"
        assert metrics.least_active_mode == "reviewer"

    def test_time_to_first_delegation(self, calculator):
        """Test the earliest delegation of each task is used."""
        tasks = [
            make_task("a", TaskStatus.COMPLETED, hours_to_complete=10),
            make_task("b"),
            make_task("c"),
        ]
        delegations = [
            make_delegation("a", timestamp=BASE + timedelta(hours=6)),
            make_delegation("a", timestamp=BASE + timedelta(hours=2)),
            make_delegation("b", timestamp=BASE + timedelta(hours=4)),
        ]
        subtasks = [SubtaskRecord(task_ref="a", plan_ref="p1") for _ in range(6)]

        metrics = calculator.performance_metrics(tasks, delegations, subtasks)

        assert metrics.avg_time_to_first_delegation_hours == 3.0
        assert metrics.avg_subtasks_per_task == 2.0
        assert metrics.implementation_efficiency == pytest.approx(100 / 3)

    def test_performance_without_tasks(self, calculator):
        """Test performance metrics stay finite without tasks."""
        metrics = calculator.performance_metrics([], [], [SubtaskRecord(task_ref="x", plan_ref="p")])

        assert metrics.implementation_efficiency == 0
        assert metrics.avg_subtasks_per_task == 0
        assert metrics.most_active_mode is None


class TestImplementationPlansAndInsights:
    """Test suite for implementation plan metrics and code review insights."""

    @pytest.fixture
    def calculator(self):
        return CoreMetricsCalculator()

    @pytest.fixture
    def subtasks(self):
        return [
            SubtaskRecord(task_ref="t1", plan_ref="P1", batch_id="b1", status=SubtaskStatus.COMPLETED,
                          sequence_number=1, estimated_duration_hours=10,
                          started_at=BASE, completed_at=BASE + timedelta(hours=12)),
            SubtaskRecord(task_ref="t1", plan_ref="P1", batch_id="b1", status=SubtaskStatus.COMPLETED,
                          sequence_number=2, estimated_duration_hours=10,
                          started_at=BASE, completed_at=BASE + timedelta(hours=10)),
            SubtaskRecord(task_ref="t2", plan_ref="P2", batch_id="b1", status=SubtaskStatus.COMPLETED,
                          sequence_number=1),
            SubtaskRecord(task_ref="t2", plan_ref="P2", batch_id="b2", status=SubtaskStatus.IN_PROGRESS,
                          sequence_number=2),
        ]

    def test_plan_completion(self, calculator, subtasks):
        """Test plans count as completed only when every subtask is."""
        metrics = calculator.implementation_plan_metrics(subtasks)

        assert metrics.total_plans == 2
        assert metrics.completed_plans == 1
        assert metrics.plan_completion_rate == 50.0
        assert metrics.avg_batches_per_plan == 1.5
        assert metrics.batch_completion_rate == pytest.approx(200 / 3)

    def test_estimation_accuracy(self, calculator, subtasks):
        """Test accuracy only uses subtasks with an estimate and both timestamps."""
        metrics = calculator.implementation_plan_metrics(subtasks)

        assert metrics.estimation_accuracy == pytest.approx(90.0)
        batch = next(b for b in metrics.batch_analysis if b.batch_id == "P1:b1")
        assert batch.avg_actual_hours == 11.0
        assert batch.estimation_accuracy == pytest.approx(90.0)

    def test_bottleneck_and_top_batches(self, calculator, subtasks):
        """Test batch highlighting by completion rate."""
        metrics = calculator.implementation_plan_metrics(subtasks)

        assert metrics.bottleneck_batches == ("P2:b2",)
        assert metrics.top_performing_batches == ("P1:b1", "P2:b1")

    def test_code_review_insights(self, calculator):
        """Test rework, efficiency score, issue patterns and reviewers."""
        reviews = [
            make_review(ReviewStatus.APPROVED, hours=24, reviewer="code-review", issues=["naming"]),
            make_review(ReviewStatus.NEEDS_CHANGES, hours=48, reviewer="code-review",
                        issues=["missing tests", "naming"]),
            make_review(ReviewStatus.APPROVED, hours=0, reviewer="architect"),
            make_review(ReviewStatus.APPROVED_WITH_RESERVATIONS, hours=24),
        ]

        insights = calculator.code_review_insights(reviews)

        assert insights.approval_rate == 50.0
        assert insights.rework_rate == 25.0
        assert insights.review_efficiency_score == 62.5
        assert insights.avg_review_cycle_days == 1.0
        assert insights.approval_trends == {"approved": 2, "approved_with_reservations": 1, "needs_changes": 1}
        assert [(p.pattern, p.frequency) for p in insights.common_issue_patterns] == [
            ("naming", 2), ("missing tests", 1)
        ]
        assert [r.reviewer for r in insights.reviewer_performance] == ["architect", "code-review"]
        assert insights.reviewer_performance[1].approval_rate == 50.0

    def test_empty_insights(self, calculator):
        """Test no reviews give a zero efficiency score."""
        insights = calculator.code_review_insights([])

        assert insights.review_efficiency_score == 0
        assert insights.common_issue_patterns == ()


class TestComputeBundle:
    """Test suite for failure isolation across sub-computations."""

    def test_failing_sub_computation_degrades_only_itself(self):
        """Test a throwing delegation computation leaves siblings intact."""
        calculator = CoreMetricsCalculator()
        tasks = [make_task("a", TaskStatus.COMPLETED, hours_to_complete=8)]
        delegations = [make_delegation("a")]

        with patch.object(calculator, "delegation_metrics", side_effect=RuntimeError("boom")):
            bundle = calculator.compute_bundle(tasks=tasks, delegations=delegations)

        assert bundle.task_metrics.total_tasks == 1
        assert bundle.delegation_metrics == DelegationMetrics.empty()
        assert bundle.degraded_groups == ("delegation_metrics",)
        assert bundle.performance_metrics.implementation_efficiency == 100.0

    def test_bundle_groups_always_present(self):
        """Test an empty bundle holds zero-valued defaults, never None."""
        bundle = CoreMetricsCalculator().compute_bundle()

        assert bundle.task_metrics.completion_rate == 0
        assert bundle.code_review_metrics.approval_rate == 0
        assert bundle.degraded_groups == ()
