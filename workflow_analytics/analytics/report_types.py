"""
Report-type table.

Static, declarative description of every recognized report type: its display
title, the metric groups it needs and the merge function that condenses the
gathered groups into a headline summary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from ..models.metrics import MetricsBundle


class ReportCategory(Enum):
    """Whether a report covers many tasks or a single task."""
    AGGREGATE = "aggregate"
    SINGLE_TASK = "single_task"


class MetricGroup(Enum):
    """Independently gathered metric groups, valued by their bundle field."""
    TASKS = "task_metrics"
    DELEGATIONS = "delegation_metrics"
    CODE_REVIEWS = "code_review_metrics"
    PERFORMANCE = "performance_metrics"
    IMPLEMENTATION_PLANS = "implementation_plans"
    CODE_REVIEW_INSIGHTS = "code_review_insights"
    DELEGATION_FLOW = "delegation_flow"
    TIME_SERIES = "time_series"
    BENCHMARKS = "benchmarks"


SummaryBuilder = Callable[[MetricsBundle], Dict[str, Any]]

BASE_GROUPS: Tuple[MetricGroup, ...] = (
    MetricGroup.TASKS,
    MetricGroup.DELEGATIONS,
    MetricGroup.CODE_REVIEWS,
    MetricGroup.PERFORMANCE,
)


@dataclass(frozen=True)
class ReportTypeSpec:
    """Definition of one report type."""
    key: str
    display_name: str
    description: str
    category: ReportCategory
    metric_groups: Tuple[MetricGroup, ...]
    summarize: Optional[SummaryBuilder] = None

    @property
    def requires_task_id(self) -> bool:
        return self.category == ReportCategory.SINGLE_TASK

    def build_summary(self, bundle: MetricsBundle) -> Dict[str, Any]:
        builder = self.summarize or task_summary
        return builder(bundle)


# Merge functions

def task_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    tasks = bundle.task_metrics
    return {
        "total_tasks": tasks.total_tasks,
        "completed_tasks": tasks.completed_tasks,
        "completion_rate": tasks.completion_rate,
        "avg_completion_time_hours": tasks.avg_completion_time_hours,
        "delegation_success_rate": bundle.delegation_metrics.success_rate,
        "approval_rate": bundle.code_review_metrics.approval_rate,
    }


def delegation_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    delegations = bundle.delegation_metrics
    busiest = delegations.mode_transitions[0].label if delegations.mode_transitions else None
    return {
        "total_delegations": delegations.total_delegations,
        "success_rate": delegations.success_rate,
        "avg_redelegation_count": delegations.avg_redelegation_count,
        "busiest_transition": busiest,
        "most_active_mode": bundle.performance_metrics.most_active_mode,
    }


def performance_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    summary = task_summary(bundle)
    summary.update({
        "implementation_efficiency": bundle.performance_metrics.implementation_efficiency,
        "trend_direction": bundle.time_series.direction.value,
        "weeks_analyzed": len(bundle.time_series.weekly_trends),
        "benchmarked_metrics": len(bundle.benchmarks.entries),
    })
    return summary


def comprehensive_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    summary = performance_summary(bundle)
    summary.update({
        "plan_completion_rate": bundle.implementation_plans.plan_completion_rate,
        "review_efficiency_score": bundle.code_review_insights.review_efficiency_score,
        "flow_efficiency_score": bundle.delegation_flow.efficiency_score,
        "bottleneck_roles": list(bundle.delegation_flow.bottleneck_roles),
    })
    return summary


def implementation_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    plans = bundle.implementation_plans
    return {
        "total_plans": plans.total_plans,
        "completed_plans": plans.completed_plans,
        "plan_completion_rate": plans.plan_completion_rate,
        "batch_completion_rate": plans.batch_completion_rate,
        "estimation_accuracy": plans.estimation_accuracy,
        "implementation_efficiency": bundle.performance_metrics.implementation_efficiency,
    }


def code_review_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    insights = bundle.code_review_insights
    top_issue = insights.common_issue_patterns[0].pattern if insights.common_issue_patterns else None
    return {
        "total_reviews": insights.total_reviews,
        "approval_rate": insights.approval_rate,
        "rework_rate": insights.rework_rate,
        "avg_review_cycle_days": insights.avg_review_cycle_days,
        "review_efficiency_score": insights.review_efficiency_score,
        "top_issue": top_issue,
    }


def flow_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    flow = bundle.delegation_flow
    return {
        "total_flows": flow.total_flows,
        "efficiency_score": flow.efficiency_score,
        "avg_flow_duration": flow.avg_flow_duration,
        "redelegation_rate": flow.redelegation_rate,
        "bottleneck_roles": list(flow.bottleneck_roles),
        "fastest_paths": list(flow.fastest_paths),
    }


def task_health_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    tasks = bundle.task_metrics
    status = tasks.status_distribution[0].label if tasks.status_distribution else None
    return {
        "status": status,
        "completion_time_hours": tasks.avg_completion_time_hours,
        "delegations": bundle.delegation_metrics.total_delegations,
        "redelegations": bundle.delegation_metrics.max_redelegation_count,
        "time_to_first_delegation_hours": bundle.performance_metrics.avg_time_to_first_delegation_hours,
    }


def research_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    reviews = bundle.code_review_metrics
    return {
        "completion_rate": bundle.task_metrics.completion_rate,
        "reviews": reviews.total_reviews,
        "approval_rate": reviews.approval_rate,
        "avg_review_time_hours": reviews.avg_review_time_hours,
    }


def collaboration_summary(bundle: MetricsBundle) -> Dict[str, Any]:
    summary = flow_summary(bundle)
    summary.update({
        "handoffs": bundle.delegation_metrics.total_delegations,
        "reviewers": len(bundle.code_review_insights.reviewer_performance),
    })
    return summary


_ALL_GROUPS = tuple(MetricGroup)

REPORT_TYPES: Dict[str, ReportTypeSpec] = {
    spec.key: spec for spec in (
        ReportTypeSpec(
            key="task_summary",
            display_name="Task Summary Report",
            description="Task completion, delegation and review overview",
            category=ReportCategory.AGGREGATE,
            metric_groups=BASE_GROUPS,
            summarize=task_summary,
        ),
        ReportTypeSpec(
            key="delegation_analytics",
            display_name="Delegation Analytics Report",
            description="Delegation volume, success and role transitions",
            category=ReportCategory.AGGREGATE,
            metric_groups=BASE_GROUPS,
            summarize=delegation_summary,
        ),
        ReportTypeSpec(
            key="performance_dashboard",
            display_name="Performance Dashboard",
            description="Weekly trends, forecasts and benchmarks",
            category=ReportCategory.AGGREGATE,
            metric_groups=BASE_GROUPS + (MetricGroup.TIME_SERIES, MetricGroup.BENCHMARKS),
            summarize=performance_summary,
        ),
        ReportTypeSpec(
            key="comprehensive",
            display_name="Comprehensive Analysis Report",
            description="Every metric group in one report",
            category=ReportCategory.AGGREGATE,
            metric_groups=_ALL_GROUPS,
            summarize=comprehensive_summary,
        ),
        ReportTypeSpec(
            key="implementation_plan_analytics",
            display_name="Implementation Plan Analytics",
            description="Plan and batch execution with estimation accuracy",
            category=ReportCategory.AGGREGATE,
            metric_groups=BASE_GROUPS + (MetricGroup.IMPLEMENTATION_PLANS,),
            summarize=implementation_summary,
        ),
        ReportTypeSpec(
            key="code_review_insights",
            display_name="Code Review Insights",
            description="Review quality, rework and recurring issues",
            category=ReportCategory.AGGREGATE,
            metric_groups=BASE_GROUPS + (MetricGroup.CODE_REVIEW_INSIGHTS,),
            summarize=code_review_summary,
        ),
        ReportTypeSpec(
            key="delegation_flow_analysis",
            display_name="Delegation Flow Analysis",
            description="Handoff efficiency, bottlenecks and problem patterns",
            category=ReportCategory.AGGREGATE,
            metric_groups=BASE_GROUPS + (MetricGroup.DELEGATION_FLOW,),
            summarize=flow_summary,
        ),
        ReportTypeSpec(
            key="task_progress_health",
            display_name="Task Progress Health",
            description="Progress and delegation health of one task",
            category=ReportCategory.SINGLE_TASK,
            metric_groups=(MetricGroup.TASKS, MetricGroup.DELEGATIONS, MetricGroup.PERFORMANCE),
            summarize=task_health_summary,
        ),
        ReportTypeSpec(
            key="implementation_execution",
            display_name="Implementation Execution Analysis",
            description="Plan execution of one task",
            category=ReportCategory.SINGLE_TASK,
            metric_groups=(MetricGroup.TASKS, MetricGroup.IMPLEMENTATION_PLANS, MetricGroup.PERFORMANCE),
            summarize=implementation_summary,
        ),
        ReportTypeSpec(
            key="code_review_quality",
            display_name="Code Review Quality",
            description="Review outcomes of one task",
            category=ReportCategory.SINGLE_TASK,
            metric_groups=(MetricGroup.CODE_REVIEWS, MetricGroup.CODE_REVIEW_INSIGHTS),
            summarize=code_review_summary,
        ),
        ReportTypeSpec(
            key="delegation_flow_analysis_task",
            display_name="Task Delegation Flow Analysis",
            description="Handoff path of one task",
            category=ReportCategory.SINGLE_TASK,
            metric_groups=(MetricGroup.DELEGATIONS, MetricGroup.DELEGATION_FLOW),
            summarize=flow_summary,
        ),
        ReportTypeSpec(
            key="research_documentation",
            display_name="Research Documentation Quality",
            description="Completion and review of one task's research work",
            category=ReportCategory.SINGLE_TASK,
            metric_groups=(MetricGroup.TASKS, MetricGroup.CODE_REVIEWS),
            summarize=research_summary,
        ),
        ReportTypeSpec(
            key="communication_collaboration",
            display_name="Communication & Collaboration",
            description="Role handoffs and reviewer involvement of one task",
            category=ReportCategory.SINGLE_TASK,
            metric_groups=(MetricGroup.DELEGATIONS, MetricGroup.DELEGATION_FLOW, MetricGroup.CODE_REVIEW_INSIGHTS),
            summarize=collaboration_summary,
        ),
    )
}


def get_report_type(key: str) -> Optional[ReportTypeSpec]:
    return REPORT_TYPES.get(key)


def aggregate_report_types() -> Tuple[str, ...]:
    return tuple(key for key, spec in REPORT_TYPES.items() if spec.category == ReportCategory.AGGREGATE)


def single_task_report_types() -> Tuple[str, ...]:
    return tuple(key for key, spec in REPORT_TYPES.items() if spec.category == ReportCategory.SINGLE_TASK)
