"""
Recommendation Synthesizer.

Maps metric thresholds to advisory messages. Rules are declared once, in a
fixed order, and evaluated independently; a rule only fires when the metric it
inspects was derived from real records.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..config import AnalyticsSettings
from ..models.metrics import BaselineKind, BenchmarkSet, FlowMetrics, MetricsBundle


STEADY_STATE_MESSAGE = "Continue with current workflow patterns. More data needed for specific recommendations."


@dataclass(frozen=True)
class RecommendationContext:
    """Inputs visible to recommendation rules."""
    bundle: MetricsBundle
    flow: FlowMetrics
    benchmarks: BenchmarkSet
    settings: AnalyticsSettings

    def previous_period_delta(self, metric: str) -> Optional[float]:
        entry = self.benchmarks.get(metric)
        if entry is None:
            return None
        comparison = entry.comparison_for(BaselineKind.PREVIOUS_PERIOD)
        return comparison.percent_delta if comparison is not None else None


@dataclass(frozen=True)
class RecommendationRule:
    """A named threshold check and the advice it produces."""
    name: str
    applies: Callable[[RecommendationContext], bool]
    message: Callable[[RecommendationContext], str]


def _fixed(text: str) -> Callable[[RecommendationContext], str]:
    return lambda context: text


def _completion_dropped(context: RecommendationContext) -> bool:
    delta = context.previous_period_delta("completion_rate")
    return delta is not None and delta < -context.settings.max_completion_rate_decline_percent


RULES: Tuple[RecommendationRule, ...] = (
    RecommendationRule(
        name="low_completion_rate",
        applies=lambda c: (c.bundle.task_metrics.total_tasks > 0
                           and c.bundle.task_metrics.completion_rate < c.settings.min_completion_rate),
        message=_fixed("Consider reviewing task complexity and breaking down large tasks into smaller subtasks."),
    ),
    RecommendationRule(
        name="excellent_completion_rate",
        applies=lambda c: (c.bundle.task_metrics.total_tasks > 0
                           and c.bundle.task_metrics.completion_rate > c.settings.excellent_completion_rate),
        message=_fixed("Excellent task completion rate! Consider taking on more challenging projects."),
    ),
    RecommendationRule(
        name="low_delegation_success",
        applies=lambda c: (c.bundle.delegation_metrics.total_delegations > 0
                           and c.bundle.delegation_metrics.success_rate < c.settings.min_delegation_success_rate),
        message=_fixed("Improve delegation success by providing clearer task descriptions and requirements."),
    ),
    RecommendationRule(
        name="low_approval_rate",
        applies=lambda c: (c.bundle.code_review_metrics.total_reviews > 0
                           and c.bundle.code_review_metrics.approval_rate < c.settings.min_approval_rate),
        message=_fixed("Focus on code quality improvements to increase first-pass approval rates."),
    ),
    RecommendationRule(
        name="slow_first_delegation",
        applies=lambda c: (c.bundle.performance_metrics.avg_time_to_first_delegation_hours
                           > c.settings.max_time_to_first_delegation_hours),
        message=_fixed("Consider delegating tasks more quickly to improve overall workflow efficiency."),
    ),
    RecommendationRule(
        name="low_implementation_efficiency",
        applies=lambda c: (c.bundle.task_metrics.total_tasks > 0
                           and c.bundle.performance_metrics.implementation_efficiency
                           < c.settings.min_implementation_efficiency),
        message=_fixed("Focus on improving implementation efficiency through better planning or resource allocation."),
    ),
    RecommendationRule(
        name="low_plan_completion",
        applies=lambda c: (c.bundle.implementation_plans.total_plans > 0
                           and c.bundle.implementation_plans.plan_completion_rate < c.settings.min_plan_completion_rate),
        message=_fixed("Review implementation planning process to improve plan completion rates."),
    ),
    RecommendationRule(
        name="low_flow_efficiency",
        applies=lambda c: c.flow.total_flows > 0 and c.flow.efficiency_score < c.settings.min_flow_efficiency_score,
        message=_fixed("Streamline role handoffs and reduce redelegations to improve delegation flow efficiency."),
    ),
    RecommendationRule(
        name="bottleneck_roles",
        applies=lambda c: bool(c.flow.bottleneck_roles),
        message=lambda c: (f"Rebalance incoming work for bottleneck roles: {', '.join(c.flow.bottleneck_roles)}."),
    ),
    RecommendationRule(
        name="completion_rate_decline",
        applies=_completion_dropped,
        message=lambda c: (f"Completion rate dropped {abs(c.previous_period_delta('completion_rate')):.1f}% "
                           f"from the previous period. Investigate recent blockers and workload changes."),
    ),
)


class RecommendationSynthesizer:
    """Turns a metrics bundle into ordered advisory messages."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None,
                 rules: Tuple[RecommendationRule, ...] = RULES,
                 logger: Optional[logging.Logger] = None):
        self.settings = settings or AnalyticsSettings()
        self.rules = rules
        self.logger = logger or logging.getLogger(__name__)

    def generate_recommendations(self,
                                 bundle: MetricsBundle,
                                 flow_metrics: Optional[FlowMetrics] = None,
                                 benchmarks: Optional[BenchmarkSet] = None) -> Tuple[str, ...]:
        """
        Evaluate every rule in declaration order.

        Args:
            bundle: Metrics of the current request
            flow_metrics: Flow metrics; defaults to the bundle's delegation flow
            benchmarks: Benchmark set; defaults to the bundle's benchmarks

        Returns:
            Messages of all firing rules, or the steady-state message when none fire
        """
        context = RecommendationContext(
            bundle=bundle,
            flow=flow_metrics if flow_metrics is not None else bundle.delegation_flow,
            benchmarks=benchmarks if benchmarks is not None else bundle.benchmarks,
            settings=self.settings,
        )

        messages: List[str] = []
        for rule in self.rules:
            if rule.applies(context):
                self.logger.debug(f"Recommendation rule '{rule.name}' fired")
                messages.append(rule.message(context))

        if not messages:
            return (STEADY_STATE_MESSAGE,)
        return tuple(messages)
