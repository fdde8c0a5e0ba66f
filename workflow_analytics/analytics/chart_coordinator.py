"""
Chart Data Coordinator.

Maps an assembled metrics bundle into named, chart-ready series. Chart specs
are declared statically: a base set shared by every report plus report-type
specific charts. Charts whose data is missing or empty are omitted; a series
of real zero values is still plotted.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..models.metrics import ChartSeries, MetricsBundle, TrendSeries


class _NoData:
    """Sentinel for a path that does not resolve."""

    def __repr__(self) -> str:
        return "NO_DATA"

    def __bool__(self) -> bool:
        return False


NO_DATA = _NoData()


@dataclass(frozen=True)
class ChartSpec:
    """Where a chart's data lives in the bundle and how to display it."""
    name: str
    kind: str
    path: str
    value_field: str = "count"
    options: Dict[str, Any] = field(default_factory=dict)


BASE_CHARTS: Tuple[ChartSpec, ...] = (
    ChartSpec("taskStatusDistribution", "pie", "task_metrics.status_distribution",
              options={"title": "Task Status Distribution"}),
    ChartSpec("delegationFlow", "sankey", "delegation_metrics.mode_transitions",
              options={"title": "Delegation Flow"}),
)

_PERFORMANCE_TREND = ChartSpec("performanceTrend", "line", "time_series.efficiency",
                               options={"title": "Weekly Efficiency", "y_axis": "percent"})
_TIME_SERIES = ChartSpec("timeSeriesAnalysis", "line", "time_series.completions",
                         options={"title": "Completed Tasks per Week"})
_FORECAST = ChartSpec("efficiencyForecast", "line", "time_series.efficiency_forecast",
                      options={"title": "Efficiency Forecast", "dashed": True, "y_axis": "percent"})
_DELEGATION_EFFICIENCY = ChartSpec("delegationEfficiency", "bar", "delegation_metrics.top_failure_reasons",
                                   options={"title": "Delegation Failure Reasons"})
_FLOW_ANALYSIS = ChartSpec("delegationFlowAnalysis", "network", "delegation_flow.transition_analysis",
                           options={"title": "Role Handoff Network"})
_CODE_REVIEW = ChartSpec("codeReviewMetrics", "bar", "code_review_insights.approval_trends",
                         options={"title": "Review Outcomes"})
_REVIEWERS = ChartSpec("reviewerPerformance", "bar", "code_review_insights.reviewer_performance",
                       value_field="approval_rate", options={"title": "Reviewer Approval Rate", "y_axis": "percent"})
_IMPLEMENTATION = ChartSpec("implementationProgress", "progress", "implementation_plans.batch_analysis",
                            value_field="completion_rate", options={"title": "Batch Completion", "max": 100})

REPORT_CHARTS: Dict[str, Tuple[ChartSpec, ...]] = {
    "task_summary": (),
    "delegation_analytics": (_DELEGATION_EFFICIENCY,),
    "performance_dashboard": (_PERFORMANCE_TREND, _TIME_SERIES, _FORECAST),
    "comprehensive": (_PERFORMANCE_TREND, _TIME_SERIES, _FLOW_ANALYSIS, _CODE_REVIEW, _IMPLEMENTATION),
    "implementation_plan_analytics": (_IMPLEMENTATION,),
    "code_review_insights": (_CODE_REVIEW, _REVIEWERS),
    "delegation_flow_analysis": (_FLOW_ANALYSIS,),
    "task_progress_health": (),
    "implementation_execution": (_IMPLEMENTATION,),
    "code_review_quality": (_CODE_REVIEW,),
    "delegation_flow_analysis_task": (_FLOW_ANALYSIS,),
    "research_documentation": (),
    "communication_collaboration": (_FLOW_ANALYSIS, _REVIEWERS),
}


def extract_by_path(source: Any, path: str) -> Any:
    """
    Resolve a dot path against attributes, mapping keys and sequence indices.

    Returns NO_DATA when any segment is missing; never raises.
    """
    current = source
    for segment in path.split("."):
        if current is None or current is NO_DATA:
            return NO_DATA
        if isinstance(current, Mapping):
            if segment not in current:
                return NO_DATA
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.lstrip("-").isdigit():
            index = int(segment)
            if not -len(current) <= index < len(current):
                return NO_DATA
            current = current[index]
        else:
            try:
                current = getattr(current, segment)
            except Exception:
                return NO_DATA
    return NO_DATA if current is None else current


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


class ChartDataCoordinator:
    """Builds chart series for a report type from a metrics bundle."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def specs_for(report_type: str) -> Tuple[ChartSpec, ...]:
        return BASE_CHARTS + REPORT_CHARTS.get(report_type, ())

    def chart_series(self, report_type: str, bundle: MetricsBundle) -> Tuple[ChartSeries, ...]:
        charts = []
        for spec in self.specs_for(report_type):
            series = self.build_series(spec, bundle)
            if series is None:
                self.logger.debug(f"Omitting chart {spec.name} for {report_type}: no data")
                continue
            charts.append(series)
        return tuple(charts)

    def build_series(self, spec: ChartSpec, bundle: MetricsBundle) -> Optional[ChartSeries]:
        """The chart series of one spec, or None when there is nothing to plot."""
        data = extract_by_path(bundle, spec.path)
        points = self.normalize(data, spec.value_field)
        # a count mapping of all zeros has no records behind it
        if not points or (isinstance(data, Mapping) and not any(value for _, value in points)):
            return None
        labels, values = zip(*points)
        return ChartSeries(
            name=spec.name,
            kind=spec.kind,
            labels=tuple(labels),
            values=tuple(values),
            options=dict(spec.options),
        )

    @staticmethod
    def normalize(data: Any, value_field: str = "count") -> List[Tuple[str, float]]:
        """
        Normalise extracted data into (label, value) points.

        Supports trend series, label-to-number mappings and sequences of
        entries exposing ``label`` and the value field. Non-numeric values
        are dropped.
        """
        if data is NO_DATA or data is None:
            return []

        if isinstance(data, TrendSeries):
            raw = [(point.label, point.value) for point in data]
        elif isinstance(data, Mapping):
            raw = [(str(label), value) for label, value in data.items()]
        elif isinstance(data, (list, tuple)):
            raw = [
                (str(getattr(entry, "label", index)), getattr(entry, value_field, None))
                for index, entry in enumerate(data)
            ]
        else:
            return []

        points = []
        for label, value in raw:
            number = _number(value)
            if number is not None:
                points.append((label, number))
        return points
