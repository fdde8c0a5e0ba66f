"""
Analytics Module

This module provides the report engine of Workflow Analytics: filter
predicates, metric calculators, flow and trend analysis, benchmarking,
recommendations, chart series and the report assembler tying them together.
"""

from .benchmark_engine import BenchmarkEngine
from .chart_coordinator import NO_DATA, ChartDataCoordinator, extract_by_path
from .core_metrics import CoreMetricsCalculator
from .data_source import InMemoryDataSource, RawDataSource
from .factory import build_report_assembler
from .flow_analyzer import FlowAnalyzer
from .query_gate import FilterPredicate, build_filter
from .recommendations import RecommendationSynthesizer
from .report_assembler import ReportAssembler, ReportOutcome, ReportRequest, ReportState
from .report_types import REPORT_TYPES, MetricGroup, ReportCategory, ReportTypeSpec
from .trend_analyzer import TrendAnalyzer

__all__ = [
    # Filtering and data access
    'FilterPredicate',
    'build_filter',
    'RawDataSource',
    'InMemoryDataSource',

    # Calculators
    'CoreMetricsCalculator',
    'FlowAnalyzer',
    'TrendAnalyzer',
    'BenchmarkEngine',
    'RecommendationSynthesizer',

    # Report assembly
    'REPORT_TYPES',
    'MetricGroup',
    'ReportCategory',
    'ReportTypeSpec',
    'ReportAssembler',
    'ReportOutcome',
    'ReportRequest',
    'ReportState',
    'ChartDataCoordinator',
    'extract_by_path',
    'NO_DATA',
    'build_report_assembler',
]
