"""
Report Assembler.

Drives one report request through its state machine:

    Filtering -> Gathering -> Transforming -> Assembled
         \\                         \\
          +-> Failed                +-> Failed

Filtering validates the request and builds the filter predicate. Gathering
fans out one concurrent unit per required metric group; a failing or timed-out
group degrades to its zero-valued default and is reported to the
observability sink. Transforming merges the gathered groups with the report
summary, recommendations and chart series. Only Filtering and Transforming can
fail a request.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import AnalyticsSettings
from ..core.exceptions import AggregationError, AnalyticsError, PartialDataError, ValidationError
from ..core.observability import FallbackEvent, LoggingObservabilitySink, ObservabilitySink
from ..models.core import as_utc
from ..models.metrics import (
    BenchmarkSet,
    CodeReviewInsights,
    CodeReviewMetrics,
    DelegationMetrics,
    FlowMetrics,
    ImplementationPlanMetrics,
    MetricsBundle,
    PerformanceMetrics,
    ReportData,
    TaskMetrics,
    TimeSeriesAnalysis,
)
from .benchmark_engine import BenchmarkEngine
from .chart_coordinator import ChartDataCoordinator
from .core_metrics import CoreMetricsCalculator
from .data_source import RawDataSource
from .flow_analyzer import FlowAnalyzer
from .query_gate import FilterPredicate, build_filter
from .recommendations import RecommendationSynthesizer
from .report_types import REPORT_TYPES, MetricGroup, ReportTypeSpec
from .trend_analyzer import TrendAnalyzer


class ReportState(Enum):
    """States of one report request."""
    FILTERING = "filtering"
    GATHERING = "gathering"
    TRANSFORMING = "transforming"
    ASSEMBLED = "assembled"
    FAILED = "failed"


GROUP_DEFAULTS: Dict[MetricGroup, Callable[[], Any]] = {
    MetricGroup.TASKS: TaskMetrics.empty,
    MetricGroup.DELEGATIONS: DelegationMetrics.empty,
    MetricGroup.CODE_REVIEWS: CodeReviewMetrics.empty,
    MetricGroup.PERFORMANCE: PerformanceMetrics.empty,
    MetricGroup.IMPLEMENTATION_PLANS: ImplementationPlanMetrics.empty,
    MetricGroup.CODE_REVIEW_INSIGHTS: CodeReviewInsights.empty,
    MetricGroup.DELEGATION_FLOW: FlowMetrics.empty,
    MetricGroup.TIME_SERIES: TimeSeriesAnalysis.empty,
    MetricGroup.BENCHMARKS: BenchmarkSet.empty,
}


class ReportRequest(BaseModel):
    """A request for one report."""

    model_config = ConfigDict(frozen=True)

    report_type: str = Field(..., description="Report type key")
    start_date: Optional[datetime] = Field(None, description="Start of the analysis period")
    end_date: Optional[datetime] = Field(None, description="End of the analysis period")
    task_id: Optional[str] = Field(None, description="Task for single-task reports")
    owner: Optional[str] = Field(None, description="Only tasks of this owner")
    mode: Optional[str] = Field(None, description="Only tasks in this role")
    priority: Optional[str] = Field(None, description="Only tasks of this priority")

    @field_validator("report_type")
    @classmethod
    def validate_report_type(cls, v):
        """Validate report type is not empty."""
        if not v or not v.strip():
            raise ValueError("Report type cannot be empty")
        return v.strip()

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_timezone(cls, v):
        return as_utc(v)

    @field_validator("task_id", "owner", "mode", "priority")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None


@dataclass(frozen=True)
class ReportOutcome:
    """Terminal state of a request with either its report or its error."""
    state: ReportState
    history: Tuple[ReportState, ...]
    report: Optional[ReportData] = None
    error: Optional[AnalyticsError] = None

    @property
    def succeeded(self) -> bool:
        return self.state == ReportState.ASSEMBLED


class ReportAssembler:
    """Assembles reports from a raw data source, one request at a time."""

    def __init__(self,
                 data_source: RawDataSource,
                 settings: Optional[AnalyticsSettings] = None,
                 calculator: Optional[CoreMetricsCalculator] = None,
                 flow_analyzer: Optional[FlowAnalyzer] = None,
                 trend_analyzer: Optional[TrendAnalyzer] = None,
                 benchmark_engine: Optional[BenchmarkEngine] = None,
                 recommendations: Optional[RecommendationSynthesizer] = None,
                 charts: Optional[ChartDataCoordinator] = None,
                 sink: Optional[ObservabilitySink] = None,
                 report_types: Optional[Mapping[str, ReportTypeSpec]] = None,
                 logger: Optional[logging.Logger] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.data_source = data_source
        self.settings = settings or AnalyticsSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.calculator = calculator or CoreMetricsCalculator(logger=self.logger)
        self.flow_analyzer = flow_analyzer or FlowAnalyzer(self.settings, logger=self.logger)
        self.trend_analyzer = trend_analyzer or TrendAnalyzer(self.settings, logger=self.logger)
        self.benchmark_engine = benchmark_engine or BenchmarkEngine(self.settings, logger=self.logger)
        self.recommendations = recommendations or RecommendationSynthesizer(self.settings, logger=self.logger)
        self.charts = charts or ChartDataCoordinator(logger=self.logger)
        self.sink = sink or LoggingObservabilitySink(self.logger)
        self.report_types = report_types if report_types is not None else REPORT_TYPES
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self._group_computations: Dict[MetricGroup, Callable[[FilterPredicate], Awaitable[Any]]] = {
            MetricGroup.TASKS: self._compute_task_metrics,
            MetricGroup.DELEGATIONS: self._compute_delegation_metrics,
            MetricGroup.CODE_REVIEWS: self._compute_code_review_metrics,
            MetricGroup.PERFORMANCE: self._compute_performance_metrics,
            MetricGroup.IMPLEMENTATION_PLANS: self._compute_implementation_plans,
            MetricGroup.CODE_REVIEW_INSIGHTS: self._compute_code_review_insights,
            MetricGroup.DELEGATION_FLOW: self._compute_delegation_flow,
            MetricGroup.TIME_SERIES: self._compute_time_series,
            MetricGroup.BENCHMARKS: self._compute_benchmarks,
        }

    async def generate_report(self, request: Union[ReportRequest, Mapping[str, Any]]) -> ReportData:
        """
        Generate a report.

        Returns:
            The assembled report

        Raises:
            ValidationError: If the request is malformed
            AggregationError: If gathered groups cannot be merged
        """
        outcome = await self.run(request)
        if outcome.error is not None:
            raise outcome.error
        return outcome.report

    async def run(self, request: Union[ReportRequest, Mapping[str, Any]]) -> ReportOutcome:
        """Drive a request to Assembled or Failed and return the outcome."""
        history: List[ReportState] = [ReportState.FILTERING]
        report_type = request.get("report_type", "") if isinstance(request, Mapping) else request.report_type

        try:
            request = self._parse_request(request)
            spec, predicate = self._filter(request)
        except ValidationError as e:
            self.logger.warning(f"Rejected report request '{report_type}': {e}")
            return self._fail(history, str(report_type), e)

        history.append(ReportState.GATHERING)
        gathered = await self._gather(spec, predicate)

        history.append(ReportState.TRANSFORMING)
        try:
            report = self._transform(spec, predicate, gathered)
        except AggregationError as e:
            self.logger.error(f"Failed to assemble {spec.key} report: {e}")
            return self._fail(history, spec.key, e)

        history.append(ReportState.ASSEMBLED)
        self.logger.info(
            f"Assembled {spec.key} report with {len(report.chart_series)} charts "
            f"and {len(report.metrics_bundle.degraded_groups)} degraded groups"
        )
        return ReportOutcome(state=ReportState.ASSEMBLED, history=tuple(history), report=report)

    def _fail(self, history: List[ReportState], report_type: str, error: AnalyticsError) -> ReportOutcome:
        history.append(ReportState.FAILED)
        self.sink.record_failure(report_type, error)
        return ReportOutcome(state=ReportState.FAILED, history=tuple(history), error=error)

    # Filtering

    @staticmethod
    def _parse_request(request: Union[ReportRequest, Mapping[str, Any]]) -> ReportRequest:
        if isinstance(request, ReportRequest):
            return request
        try:
            return ReportRequest(**dict(request))
        except pydantic.ValidationError as e:
            messages = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()]
            raise ValidationError(f"Invalid report request: {'; '.join(messages)}",
                                  validation_errors=messages)

    def _filter(self, request: ReportRequest) -> Tuple[ReportTypeSpec, FilterPredicate]:
        spec = self.report_types.get(request.report_type)
        if spec is None:
            raise ValidationError(
                f"Unknown report type '{request.report_type}'. "
                f"Supported types: {', '.join(sorted(self.report_types))}",
                field_name="report_type",
            )

        if spec.requires_task_id and not request.task_id:
            raise ValidationError(f"Report type '{spec.key}' requires a task_id", field_name="task_id")

        start, end = self._resolve_range(spec, request.start_date, request.end_date)
        if start is not None and end is not None:
            if end < start:
                raise ValidationError(
                    f"end_date {end.isoformat()} is before start_date {start.isoformat()}",
                    field_name="end_date",
                )

        predicate = build_filter(
            date_range=(start, end),
            owner=request.owner,
            mode=request.mode,
            priority=request.priority,
            task_id=request.task_id if spec.requires_task_id else None,
        )
        return spec, predicate

    def _resolve_range(self, spec: ReportTypeSpec,
                       start: Optional[datetime],
                       end: Optional[datetime]) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Aggregate reports default to the configured period ending now."""
        if spec.requires_task_id:
            return start, end

        period = timedelta(days=self.settings.default_period_days)
        if end is None:
            end = as_utc(self.clock())
        if start is None:
            start = end - period
        return start, end

    # Gathering

    async def _gather(self, spec: ReportTypeSpec, predicate: FilterPredicate) -> Dict[MetricGroup, Any]:
        self.logger.info(f"Gathering {len(spec.metric_groups)} metric groups for {spec.key}")

        tasks = [
            asyncio.create_task(self._gather_group(spec, group, predicate), name=f"gather_{group.value}")
            for group in spec.metric_groups
        ]
        results = await asyncio.gather(*tasks)
        return dict(zip(spec.metric_groups, results))

    async def _gather_group(self, spec: ReportTypeSpec, group: MetricGroup, predicate: FilterPredicate) -> Any:
        """One group's fetch and computation; failures and timeouts yield the default."""
        try:
            return await asyncio.wait_for(
                self._group_computations[group](predicate),
                timeout=self.settings.group_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            error = PartialDataError(
                f"Metric group {group.value} timed out after {self.settings.group_timeout_seconds}s",
                group=group.value,
                original_error=e,
            )
        except Exception as e:
            error = PartialDataError(f"Metric group {group.value} failed: {e}", group=group.value, original_error=e)

        self.logger.warning(f"{error.message}; using defaults")
        self.sink.record_fallback(FallbackEvent.from_error(error, spec.key))
        return _Degraded(GROUP_DEFAULTS[group]())

    async def _compute_task_metrics(self, predicate: FilterPredicate) -> TaskMetrics:
        return self.calculator.task_metrics(await self.data_source.fetch_tasks(predicate))

    async def _compute_delegation_metrics(self, predicate: FilterPredicate) -> DelegationMetrics:
        delegations, tasks = await asyncio.gather(
            self.data_source.fetch_delegations(predicate),
            self.data_source.fetch_tasks(predicate),
        )
        return self.calculator.delegation_metrics(delegations, tasks)

    async def _compute_code_review_metrics(self, predicate: FilterPredicate) -> CodeReviewMetrics:
        return self.calculator.code_review_metrics(await self.data_source.fetch_code_reviews(predicate))

    async def _compute_performance_metrics(self, predicate: FilterPredicate) -> PerformanceMetrics:
        tasks, delegations, subtasks = await asyncio.gather(
            self.data_source.fetch_tasks(predicate),
            self.data_source.fetch_delegations(predicate),
            self.data_source.fetch_subtasks(predicate),
        )
        return self.calculator.performance_metrics(tasks, delegations, subtasks)

    async def _compute_implementation_plans(self, predicate: FilterPredicate) -> ImplementationPlanMetrics:
        return self.calculator.implementation_plan_metrics(await self.data_source.fetch_subtasks(predicate))

    async def _compute_code_review_insights(self, predicate: FilterPredicate) -> CodeReviewInsights:
        return self.calculator.code_review_insights(await self.data_source.fetch_code_reviews(predicate))

    async def _compute_delegation_flow(self, predicate: FilterPredicate) -> FlowMetrics:
        delegations, transitions = await asyncio.gather(
            self.data_source.fetch_delegations(predicate),
            self.data_source.fetch_transitions(predicate),
        )
        return self.flow_analyzer.flow_metrics(delegations, transitions)

    async def _compute_time_series(self, predicate: FilterPredicate) -> TimeSeriesAnalysis:
        tasks, delegations, reviews = await asyncio.gather(
            self.data_source.fetch_tasks(predicate),
            self.data_source.fetch_delegations(predicate),
            self.data_source.fetch_code_reviews(predicate),
        )
        return self.trend_analyzer.time_series_analysis(tasks, delegations, reviews, predicate.date_range)

    async def _compute_benchmarks(self, predicate: FilterPredicate) -> BenchmarkSet:
        return await self.benchmark_engine.benchmark(self.data_source, predicate)

    # Transforming

    def _transform(self, spec: ReportTypeSpec, predicate: FilterPredicate,
                   gathered: Dict[MetricGroup, Any]) -> ReportData:
        stage = "bundle"
        try:
            degraded = tuple(group.value for group, value in gathered.items() if isinstance(value, _Degraded))
            groups = {
                group.value: value.default if isinstance(value, _Degraded) else value
                for group, value in gathered.items()
            }
            bundle = MetricsBundle(**groups, degraded_groups=degraded)

            stage = "summary"
            summary = spec.build_summary(bundle)

            stage = "recommendations"
            recommendations = self.recommendations.generate_recommendations(bundle)

            stage = "charts"
            chart_series = self.charts.chart_series(spec.key, bundle)
        except Exception as e:
            raise AggregationError(
                f"Could not assemble {spec.key} report during {stage}: {e}",
                report_type=spec.key,
                stage=stage,
                original_error=e,
            ) from e

        return ReportData(
            report_type=spec.key,
            title=spec.display_name,
            generated_at=self.clock(),
            metrics_bundle=bundle,
            date_range=predicate.date_range,
            filters=predicate.to_dict(),
            chart_series=chart_series,
            recommendations=recommendations,
            summary=summary,
        )


@dataclass(frozen=True)
class _Degraded:
    """Marks a group default substituted for a failed computation."""
    default: Any
