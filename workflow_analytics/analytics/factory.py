"""Composition root for the analytics engine."""

import logging
from typing import Optional

from ..config import AnalyticsSettings
from ..core.observability import LoggingObservabilitySink, ObservabilitySink
from .benchmark_engine import BenchmarkEngine
from .chart_coordinator import ChartDataCoordinator
from .core_metrics import CoreMetricsCalculator
from .data_source import RawDataSource
from .flow_analyzer import FlowAnalyzer
from .recommendations import RecommendationSynthesizer
from .report_assembler import ReportAssembler
from .trend_analyzer import TrendAnalyzer


def build_report_assembler(data_source: RawDataSource,
                           settings: Optional[AnalyticsSettings] = None,
                           logger: Optional[logging.Logger] = None,
                           sink: Optional[ObservabilitySink] = None) -> ReportAssembler:
    """
    Wire the analytics components around a data source.

    Every component shares the same settings and logger; the observability
    sink defaults to one that forwards to that logger.
    """
    settings = settings or AnalyticsSettings()
    logger = logger or logging.getLogger("workflow_analytics")

    return ReportAssembler(
        data_source=data_source,
        settings=settings,
        calculator=CoreMetricsCalculator(logger=logger),
        flow_analyzer=FlowAnalyzer(settings, logger=logger),
        trend_analyzer=TrendAnalyzer(settings, logger=logger),
        benchmark_engine=BenchmarkEngine(settings, logger=logger),
        recommendations=RecommendationSynthesizer(settings, logger=logger),
        charts=ChartDataCoordinator(logger=logger),
        sink=sink or LoggingObservabilitySink(logger),
        logger=logger,
    )
