"""
Core Metrics Calculator.

Computes the first-order aggregates of a report from raw record sets: task
completion, delegation outcomes, code review outcomes and overall performance,
plus implementation-plan execution and code review insights.

Every method is a pure function of its inputs. ``compute_bundle`` isolates each
sub-computation: one that raises is logged and replaced by its zero-valued
default while the others are still computed.
"""

import logging
from collections import Counter, defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from ..core.calculations import clamp_percentage, percentage, safe_divide, safe_mean
from ..models.core import (
    CodeReviewRecord,
    DelegationEvent,
    ReviewStatus,
    SubtaskRecord,
    TaskRecord,
    TaskStatus,
)
from ..models.metrics import (
    BatchAnalysis,
    CodeReviewInsights,
    CodeReviewMetrics,
    DelegationMetrics,
    DistributionEntry,
    FailureReason,
    ImplementationPlanMetrics,
    IssuePattern,
    MetricsBundle,
    ModeTransition,
    PerformanceMetrics,
    ReviewerPerformance,
    TaskMetrics,
)


T = TypeVar("T")

UNASSIGNED = "unassigned"
DEFAULT_BATCH = "default"
TOP_FAILURE_REASONS = 5
TOP_ISSUE_PATTERNS = 5
MAX_HIGHLIGHTED_BATCHES = 3


def _distribution(labels: Sequence[Optional[str]]) -> Tuple[DistributionEntry, ...]:
    counts = Counter(label if label else UNASSIGNED for label in labels)
    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return tuple(DistributionEntry(label=label, count=count) for label, count in ordered)


class CoreMetricsCalculator:
    """First-order aggregates over tasks, delegations, reviews and subtasks."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def task_metrics(self, records: Sequence[TaskRecord]) -> TaskMetrics:
        """
        Aggregate task completion.

        Args:
            records: Tasks matching the request filter

        Returns:
            Task totals, completion rate, average completion time in hours and
            status/priority/owner distributions
        """
        status_counts = Counter(task.status for task in records)
        total = len(records)
        completed = status_counts.get(TaskStatus.COMPLETED, 0)

        completion_hours = [
            task.completion_hours for task in records
            if task.is_completed and task.completion_time is not None
        ]

        return TaskMetrics(
            total_tasks=total,
            completed_tasks=completed,
            in_progress_tasks=status_counts.get(TaskStatus.IN_PROGRESS, 0),
            not_started_tasks=status_counts.get(TaskStatus.NOT_STARTED, 0),
            needs_review_tasks=status_counts.get(TaskStatus.NEEDS_REVIEW, 0),
            needs_changes_tasks=status_counts.get(TaskStatus.NEEDS_CHANGES, 0),
            completion_rate=percentage(completed, total),
            avg_completion_time_hours=safe_mean(completion_hours),
            status_distribution=_distribution([task.status.value for task in records]),
            priority_distribution=_distribution([task.priority for task in records]),
            owner_distribution=_distribution([task.owner for task in records]),
        )

    def delegation_metrics(self,
                           events: Sequence[DelegationEvent],
                           tasks: Sequence[TaskRecord] = ()) -> DelegationMetrics:
        """
        Aggregate delegation outcomes.

        Redelegation average and maximum are taken over the redelegation count
        of every filtered task, delegated or not. Failure reasons are ranked by
        frequency, ties broken by reason text; failures without a reason are
        not ranked.
        """
        total = len(events)
        successful = sum(1 for event in events if event.success)
        failed = total - successful

        redelegations = [task.redelegation_count for task in tasks]

        transitions = Counter((event.from_role, event.to_role) for event in events)
        mode_transitions = tuple(
            ModeTransition(from_role=from_role, to_role=to_role, count=count)
            for (from_role, to_role), count in sorted(
                transitions.items(), key=lambda item: (-item[1], item[0])
            )
        )

        reasons = Counter(
            event.rejection_reason
            for event in events if not event.success and event.rejection_reason
        )
        top_reasons = sorted(reasons.items(), key=lambda item: (-item[1], item[0]))[:TOP_FAILURE_REASONS]

        return DelegationMetrics(
            total_delegations=total,
            successful_delegations=successful,
            failed_delegations=failed,
            success_rate=percentage(successful, total),
            avg_redelegation_count=safe_mean(redelegations),
            max_redelegation_count=max(redelegations, default=0),
            mode_transitions=mode_transitions,
            top_failure_reasons=tuple(FailureReason(reason=reason, count=count) for reason, count in top_reasons),
        )

    def code_review_metrics(self, reviews: Sequence[CodeReviewRecord]) -> CodeReviewMetrics:
        status_counts = Counter(review.status for review in reviews)
        total = len(reviews)
        approved = status_counts.get(ReviewStatus.APPROVED, 0)

        return CodeReviewMetrics(
            total_reviews=total,
            approved_reviews=approved,
            approved_with_reservations_reviews=status_counts.get(ReviewStatus.APPROVED_WITH_RESERVATIONS, 0),
            needs_changes_reviews=status_counts.get(ReviewStatus.NEEDS_CHANGES, 0),
            pending_reviews=status_counts.get(ReviewStatus.PENDING, 0),
            approval_rate=percentage(approved, total),
            avg_review_time_hours=safe_mean(review.review_hours for review in reviews),
        )

    def performance_metrics(self,
                            tasks: Sequence[TaskRecord],
                            delegations: Sequence[DelegationEvent],
                            subtasks: Sequence[SubtaskRecord]) -> PerformanceMetrics:
        """
        Overall execution performance.

        Mode activity is measured by how often a role is the target of a
        delegation; ties go to the role encountered first.
        """
        total = len(tasks)
        completed = sum(1 for task in tasks if task.is_completed)

        mode_activity: Dict[str, int] = {}
        for event in delegations:
            mode_activity[event.to_role] = mode_activity.get(event.to_role, 0) + 1

        most_active = least_active = None
        for mode, count in mode_activity.items():
            if most_active is None or count > mode_activity[most_active]:
                most_active = mode
            if least_active is None or count < mode_activity[least_active]:
                least_active = mode

        first_delegation = {}
        for event in delegations:
            current = first_delegation.get(event.task_ref)
            if current is None or event.timestamp < current:
                first_delegation[event.task_ref] = event.timestamp

        wait_hours = [
            (first_delegation[task.id] - task.creation_time).total_seconds() / 3600
            for task in tasks if task.id in first_delegation
        ]

        return PerformanceMetrics(
            implementation_efficiency=percentage(completed, total),
            avg_subtasks_per_task=safe_divide(len(subtasks), total),
            most_active_mode=most_active,
            least_active_mode=least_active,
            avg_time_to_first_delegation_hours=safe_mean(wait_hours),
        )

    def implementation_plan_metrics(self, subtasks: Sequence[SubtaskRecord]) -> ImplementationPlanMetrics:
        """
        Implementation plan execution derived from subtasks.

        Plans are identified by ``plan_ref`` and batches by ``batch_id`` within
        a plan. Estimation accuracy only uses subtasks with an estimate and both
        start and completion times.
        """
        plans: Dict[str, List[SubtaskRecord]] = defaultdict(list)
        batches: Dict[Tuple[str, str], List[SubtaskRecord]] = defaultdict(list)
        for subtask in subtasks:
            plans[subtask.plan_ref].append(subtask)
            batches[(subtask.plan_ref, subtask.batch_id or DEFAULT_BATCH)].append(subtask)

        total_plans = len(plans)
        completed_plans = sum(
            1 for plan_subtasks in plans.values()
            if all(subtask.is_completed for subtask in plan_subtasks)
        )

        batch_analysis = []
        for (plan_ref, batch_id), batch_subtasks in batches.items():
            completed = sum(1 for subtask in batch_subtasks if subtask.is_completed)
            accuracies = [self._estimation_accuracy(subtask) for subtask in batch_subtasks]
            batch_analysis.append(BatchAnalysis(
                batch_id=f"{plan_ref}:{batch_id}",
                total_subtasks=len(batch_subtasks),
                completed_subtasks=completed,
                completion_rate=percentage(completed, len(batch_subtasks)),
                avg_estimated_hours=safe_mean(s.estimated_duration_hours for s in batch_subtasks),
                avg_actual_hours=safe_mean(s.actual_duration_hours for s in batch_subtasks),
                estimation_accuracy=clamp_percentage(safe_mean(accuracies)),
            ))

        all_accuracies = [self._estimation_accuracy(subtask) for subtask in subtasks]

        return ImplementationPlanMetrics(
            total_plans=total_plans,
            completed_plans=completed_plans,
            plan_completion_rate=percentage(completed_plans, total_plans),
            avg_batches_per_plan=safe_divide(len(batches), total_plans),
            avg_subtasks_per_batch=safe_mean(batch.total_subtasks for batch in batch_analysis),
            batch_completion_rate=clamp_percentage(safe_mean(batch.completion_rate for batch in batch_analysis)),
            estimation_accuracy=clamp_percentage(safe_mean(all_accuracies)),
            batch_analysis=tuple(batch_analysis),
            bottleneck_batches=tuple(
                batch.batch_id for batch in batch_analysis if batch.completion_rate < 50
            )[:MAX_HIGHLIGHTED_BATCHES],
            top_performing_batches=tuple(
                batch.batch_id for batch in batch_analysis if batch.completion_rate > 90
            )[:MAX_HIGHLIGHTED_BATCHES],
        )

    @staticmethod
    def _estimation_accuracy(subtask: SubtaskRecord) -> Optional[float]:
        estimate = subtask.estimated_duration_hours
        actual = subtask.actual_duration_hours
        if not estimate or actual is None:
            return None
        return max(0.0, 100 - abs(actual - estimate) / estimate * 100)

    def code_review_insights(self, reviews: Sequence[CodeReviewRecord]) -> CodeReviewInsights:
        """Review quality: rework, cycle time, recurring issues and reviewers."""
        status_counts = Counter(review.status for review in reviews)
        total = len(reviews)
        approved = status_counts.get(ReviewStatus.APPROVED, 0)
        needs_changes = status_counts.get(ReviewStatus.NEEDS_CHANGES, 0)

        approval_rate = percentage(approved, total)
        rework_rate = percentage(needs_changes, total)
        review_efficiency = clamp_percentage((approval_rate + (100 - rework_rate)) / 2) if total else 0.0

        issues = Counter(issue for review in reviews for issue in review.issues if issue)
        patterns = sorted(issues.items(), key=lambda item: (-item[1], item[0]))[:TOP_ISSUE_PATTERNS]

        by_reviewer: Dict[str, List[CodeReviewRecord]] = defaultdict(list)
        for review in reviews:
            if review.reviewer:
                by_reviewer[review.reviewer].append(review)

        reviewer_performance = tuple(
            ReviewerPerformance(
                reviewer=reviewer,
                total_reviews=len(reviewed),
                avg_cycle_days=safe_mean(review.review_hours / 24 for review in reviewed),
                approval_rate=percentage(
                    sum(1 for review in reviewed if review.status == ReviewStatus.APPROVED),
                    len(reviewed),
                ),
            )
            for reviewer, reviewed in sorted(by_reviewer.items())
        )

        return CodeReviewInsights(
            total_reviews=total,
            approval_rate=approval_rate,
            rework_rate=rework_rate,
            avg_review_cycle_days=safe_mean(review.review_hours / 24 for review in reviews),
            review_efficiency_score=review_efficiency,
            approved=approved,
            approved_with_reservations=status_counts.get(ReviewStatus.APPROVED_WITH_RESERVATIONS, 0),
            needs_changes=needs_changes,
            common_issue_patterns=tuple(IssuePattern(pattern=p, frequency=f) for p, f in patterns),
            reviewer_performance=reviewer_performance,
        )

    def compute_bundle(self,
                       tasks: Sequence[TaskRecord] = (),
                       delegations: Sequence[DelegationEvent] = (),
                       reviews: Sequence[CodeReviewRecord] = (),
                       subtasks: Sequence[SubtaskRecord] = ()) -> MetricsBundle:
        """Compute the four base metric groups, each isolated from the others."""
        degraded: List[str] = []

        task_metrics = self._guarded("task_metrics", lambda: self.task_metrics(tasks),
                                     TaskMetrics.empty, degraded)
        delegation_metrics = self._guarded("delegation_metrics", lambda: self.delegation_metrics(delegations, tasks),
                                           DelegationMetrics.empty, degraded)
        code_review_metrics = self._guarded("code_review_metrics", lambda: self.code_review_metrics(reviews),
                                            CodeReviewMetrics.empty, degraded)
        performance_metrics = self._guarded(
            "performance_metrics",
            lambda: self.performance_metrics(tasks, delegations, subtasks),
            PerformanceMetrics.empty,
            degraded,
        )

        return MetricsBundle(
            task_metrics=task_metrics,
            delegation_metrics=delegation_metrics,
            code_review_metrics=code_review_metrics,
            performance_metrics=performance_metrics,
            degraded_groups=tuple(degraded),
        )

    def _guarded(self, name: str, compute: Callable[[], T], default: Callable[[], T],
                 degraded: List[str]) -> T:
        try:
            return compute()
        except Exception as e:
            self.logger.warning(f"Computation of {name} failed, using defaults: {e}")
            degraded.append(name)
            return default()
