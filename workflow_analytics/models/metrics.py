"""
Metric and report models produced by the analytics engine.

Every bundle is an immutable dataclass with an ``empty()`` constructor that
returns the documented zero-valued default. Report assembly substitutes these
defaults for metric groups that could not be computed, so downstream consumers
never see a missing group.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple


class TrendDirection(Enum):
    """Direction of trend analysis."""
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"
    UNKNOWN = "unknown"


class BaselineKind(Enum):
    """Baselines a current-period metric can be benchmarked against."""
    PREVIOUS_PERIOD = "previous_period"
    TEAM_HISTORICAL = "team_historical"
    FIXED_TARGET = "fixed_target"


class Significance(Enum):
    """Magnitude of a benchmark delta."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Supporting entries

@dataclass(frozen=True)
class DistributionEntry:
    """Count of records sharing a label."""
    label: str
    count: int


@dataclass(frozen=True)
class ModeTransition:
    """Count of delegations between two roles."""
    from_role: str
    to_role: str
    count: int

    @property
    def label(self) -> str:
        return f"{self.from_role} → {self.to_role}"


@dataclass(frozen=True)
class FailureReason:
    reason: str
    count: int

    @property
    def label(self) -> str:
        return self.reason


@dataclass(frozen=True)
class BatchAnalysis:
    """Execution statistics of one subtask batch."""
    batch_id: str
    total_subtasks: int
    completed_subtasks: int
    completion_rate: float
    avg_estimated_hours: float
    avg_actual_hours: float
    estimation_accuracy: float

    @property
    def label(self) -> str:
        return self.batch_id

    @property
    def value(self) -> float:
        return self.completion_rate


@dataclass(frozen=True)
class IssuePattern:
    pattern: str
    frequency: int

    @property
    def label(self) -> str:
        return self.pattern

    @property
    def count(self) -> int:
        return self.frequency


@dataclass(frozen=True)
class ReviewerPerformance:
    reviewer: str
    total_reviews: int
    avg_cycle_days: float
    approval_rate: float

    @property
    def label(self) -> str:
        return self.reviewer

    @property
    def value(self) -> float:
        return self.approval_rate


@dataclass(frozen=True)
class RoleTransitionAnalysis:
    """Volume, speed and success of one role-to-role handoff path."""
    from_role: str
    to_role: str
    count: int
    avg_duration_hours: float
    success_rate: float

    @property
    def label(self) -> str:
        return f"{self.from_role} → {self.to_role}"


@dataclass(frozen=True)
class ProblemPattern:
    pattern: str
    frequency: int

    @property
    def label(self) -> str:
        return self.pattern

    @property
    def count(self) -> int:
        return self.frequency


# First-order metric bundles

@dataclass(frozen=True)
class TaskMetrics:
    """Task completion aggregates."""
    total_tasks: int = 0
    completed_tasks: int = 0
    in_progress_tasks: int = 0
    not_started_tasks: int = 0
    needs_review_tasks: int = 0
    needs_changes_tasks: int = 0
    completion_rate: float = 0.0
    avg_completion_time_hours: float = 0.0
    status_distribution: Tuple[DistributionEntry, ...] = ()
    priority_distribution: Tuple[DistributionEntry, ...] = ()
    owner_distribution: Tuple[DistributionEntry, ...] = ()

    @classmethod
    def empty(cls) -> "TaskMetrics":
        return cls()


@dataclass(frozen=True)
class DelegationMetrics:
    """Delegation volume, outcome and redelegation aggregates."""
    total_delegations: int = 0
    successful_delegations: int = 0
    failed_delegations: int = 0
    success_rate: float = 0.0
    avg_redelegation_count: float = 0.0
    max_redelegation_count: int = 0
    mode_transitions: Tuple[ModeTransition, ...] = ()
    top_failure_reasons: Tuple[FailureReason, ...] = ()

    @classmethod
    def empty(cls) -> "DelegationMetrics":
        return cls()


@dataclass(frozen=True)
class CodeReviewMetrics:
    """Code review outcome aggregates."""
    total_reviews: int = 0
    approved_reviews: int = 0
    approved_with_reservations_reviews: int = 0
    needs_changes_reviews: int = 0
    pending_reviews: int = 0
    approval_rate: float = 0.0
    avg_review_time_hours: float = 0.0

    @classmethod
    def empty(cls) -> "CodeReviewMetrics":
        return cls()


@dataclass(frozen=True)
class PerformanceMetrics:
    implementation_efficiency: float = 0.0
    avg_subtasks_per_task: float = 0.0
    most_active_mode: Optional[str] = None
    least_active_mode: Optional[str] = None
    avg_time_to_first_delegation_hours: float = 0.0

    @classmethod
    def empty(cls) -> "PerformanceMetrics":
        return cls()


@dataclass(frozen=True)
class ImplementationPlanMetrics:
    """Implementation plan and batch execution aggregates."""
    total_plans: int = 0
    completed_plans: int = 0
    plan_completion_rate: float = 0.0
    avg_batches_per_plan: float = 0.0
    avg_subtasks_per_batch: float = 0.0
    batch_completion_rate: float = 0.0
    estimation_accuracy: float = 0.0
    batch_analysis: Tuple[BatchAnalysis, ...] = ()
    bottleneck_batches: Tuple[str, ...] = ()
    top_performing_batches: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "ImplementationPlanMetrics":
        return cls()


@dataclass(frozen=True)
class CodeReviewInsights:
    """Review quality insights beyond the first-order code review metrics."""
    total_reviews: int = 0
    approval_rate: float = 0.0
    rework_rate: float = 0.0
    avg_review_cycle_days: float = 0.0
    review_efficiency_score: float = 0.0
    approved: int = 0
    approved_with_reservations: int = 0
    needs_changes: int = 0
    common_issue_patterns: Tuple[IssuePattern, ...] = ()
    reviewer_performance: Tuple[ReviewerPerformance, ...] = ()

    @property
    def approval_trends(self) -> Dict[str, int]:
        return {
            "approved": self.approved,
            "approved_with_reservations": self.approved_with_reservations,
            "needs_changes": self.needs_changes,
        }

    @classmethod
    def empty(cls) -> "CodeReviewInsights":
        return cls()


@dataclass(frozen=True)
class FlowMetrics:
    """Delegation flow efficiency and bottleneck analysis."""
    total_flows: int = 0
    avg_flow_duration: float = 0.0
    success_rate: float = 0.0
    redelegation_rate: float = 0.0
    efficiency_score: float = 0.0
    bottleneck_roles: Tuple[str, ...] = ()
    role_transition_counts: Tuple[ModeTransition, ...] = ()
    transition_analysis: Tuple[RoleTransitionAnalysis, ...] = ()
    fastest_paths: Tuple[str, ...] = ()
    problem_patterns: Tuple[ProblemPattern, ...] = ()

    def transition_count(self, from_role: str, to_role: str) -> int:
        for transition in self.role_transition_counts:
            if transition.from_role == from_role and transition.to_role == to_role:
                return transition.count
        return 0

    @classmethod
    def empty(cls) -> "FlowMetrics":
        return cls()


# Time series

@dataclass(frozen=True)
class TrendPoint:
    label: str
    value: float


@dataclass(frozen=True)
class TrendSeries:
    """Ordered (window label, value) points."""
    points: Tuple[TrendPoint, ...] = ()

    @classmethod
    def from_pairs(cls, labels, values) -> "TrendSeries":
        return cls(tuple(TrendPoint(str(label), float(value)) for label, value in zip(labels, values)))

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(point.label for point in self.points)

    @property
    def values(self) -> Tuple[float, ...]:
        return tuple(point.value for point in self.points)

    def __iter__(self) -> Iterator[TrendPoint]:
        return iter(self.points)

    def __len__(self) -> int:
        return len(self.points)

    def __bool__(self) -> bool:
        return bool(self.points)


@dataclass(frozen=True)
class WeeklyTrend:
    """Aggregates of one 7-day window."""
    week_start: datetime
    week_end: datetime
    tasks_created: int
    tasks_completed: int
    avg_completion_time_hours: float
    delegation_volume: int
    code_reviews: int
    weekly_efficiency: float

    @property
    def label(self) -> str:
        return self.week_start.date().isoformat()


@dataclass(frozen=True)
class TrendInsight:
    metric: str
    current_value: float
    previous_value: float
    change_percent: float
    direction: TrendDirection
    message: str
    actionable: bool


@dataclass(frozen=True)
class TimeSeriesAnalysis:
    """Weekly trends with fitted and forecast efficiency."""
    weekly_trends: Tuple[WeeklyTrend, ...] = ()
    efficiency: TrendSeries = field(default_factory=TrendSeries)
    efficiency_fit: TrendSeries = field(default_factory=TrendSeries)
    efficiency_forecast: TrendSeries = field(default_factory=TrendSeries)
    completions: TrendSeries = field(default_factory=TrendSeries)
    direction: TrendDirection = TrendDirection.UNKNOWN
    slope: float = 0.0
    volume_efficiency_correlation: float = 0.0
    insights: Tuple[TrendInsight, ...] = ()

    @classmethod
    def empty(cls) -> "TimeSeriesAnalysis":
        return cls()


# Benchmarks

@dataclass(frozen=True)
class BenchmarkComparison:
    """One current-period metric compared to one baseline."""
    metric: str
    baseline_kind: BaselineKind
    current_value: float
    baseline_value: float
    percent_delta: float
    percentile_score: float = 0.0
    significance: Significance = Significance.LOW
    direction: TrendDirection = TrendDirection.STABLE


@dataclass(frozen=True)
class BenchmarkEntry:
    metric: str
    current_value: float
    comparisons: Tuple[BenchmarkComparison, ...] = ()

    def comparison_for(self, kind: BaselineKind) -> Optional[BenchmarkComparison]:
        for comparison in self.comparisons:
            if comparison.baseline_kind == kind:
                return comparison
        return None


@dataclass(frozen=True)
class BenchmarkSet:
    entries: Tuple[BenchmarkEntry, ...] = ()

    def get(self, metric: str) -> Optional[BenchmarkEntry]:
        for entry in self.entries:
            if entry.metric == metric:
                return entry
        return None

    @property
    def current_values(self) -> Dict[str, float]:
        return {entry.metric: entry.current_value for entry in self.entries}

    @classmethod
    def empty(cls) -> "BenchmarkSet":
        return cls()


# Report

@dataclass(frozen=True)
class MetricsBundle:
    """All metric groups computed for one filter predicate."""
    task_metrics: TaskMetrics = field(default_factory=TaskMetrics.empty)
    delegation_metrics: DelegationMetrics = field(default_factory=DelegationMetrics.empty)
    code_review_metrics: CodeReviewMetrics = field(default_factory=CodeReviewMetrics.empty)
    performance_metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics.empty)
    implementation_plans: ImplementationPlanMetrics = field(default_factory=ImplementationPlanMetrics.empty)
    code_review_insights: CodeReviewInsights = field(default_factory=CodeReviewInsights.empty)
    delegation_flow: FlowMetrics = field(default_factory=FlowMetrics.empty)
    time_series: TimeSeriesAnalysis = field(default_factory=TimeSeriesAnalysis.empty)
    benchmarks: BenchmarkSet = field(default_factory=BenchmarkSet.empty)
    degraded_groups: Tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> "MetricsBundle":
        return cls()


@dataclass(frozen=True)
class ChartSeries:
    """Chart-ready series for presentation collaborators."""
    name: str
    kind: str
    labels: Tuple[str, ...]
    values: Tuple[float, ...]
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportData:
    """Final structured output of one report request."""
    report_type: str
    title: str
    generated_at: datetime
    metrics_bundle: MetricsBundle
    date_range: Optional[Tuple[datetime, datetime]] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    chart_series: Tuple[ChartSeries, ...] = ()
    recommendations: Tuple[str, ...] = ()
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation."""
        return to_jsonable(self)


def to_jsonable(value: Any) -> Any:
    """Convert dataclasses, enums, datetimes and tuples into JSON-ready values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
