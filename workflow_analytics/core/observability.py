"""
Observability port for the analytics engine.

Metric groups that fall back to their zero-valued defaults are reported to an
observability sink as structured events. The engine never persists these
events itself; the default sink forwards them to a standard library logger.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import ErrorSeverity, PartialDataError


@dataclass(frozen=True)
class FallbackEvent:
    """A metric group was replaced by its default."""
    group: str
    cause: str
    error_type: str
    report_type: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_error(cls, error: PartialDataError, report_type: Optional[str] = None) -> "FallbackEvent":
        cause = error.original_error if error.original_error is not None else error
        return cls(
            group=error.group,
            cause=str(cause) or type(cause).__name__,
            error_type=type(cause).__name__,
            report_type=report_type,
            severity=error.severity,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group": self.group,
            "cause": self.cause,
            "error_type": self.error_type,
            "report_type": self.report_type,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
        }


class ObservabilitySink(ABC):
    """Receives structured warn/error events from the engine."""

    @abstractmethod
    def record_fallback(self, event: FallbackEvent) -> None:
        """Record that a metric group degraded to its default."""

    @abstractmethod
    def record_failure(self, report_type: str, error: Exception) -> None:
        """Record that a report request failed."""


class LoggingObservabilitySink(ObservabilitySink):
    """Forwards observability events to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def record_fallback(self, event: FallbackEvent) -> None:
        self.logger.warning(
            f"Metric group '{event.group}' fell back to defaults: {event.error_type}: {event.cause}",
            extra={"analytics_event": event.to_dict()},
        )

    def record_failure(self, report_type: str, error: Exception) -> None:
        self.logger.error(
            f"Report '{report_type}' failed: {type(error).__name__}: {error}",
            extra={"analytics_event": {"report_type": report_type, "error_type": type(error).__name__}},
        )


class RecordingObservabilitySink(ObservabilitySink):
    """Keeps events in memory; useful for callers that inspect degradations."""

    def __init__(self):
        self.fallbacks: List[FallbackEvent] = []
        self.failures: List[Dict[str, Any]] = []

    def record_fallback(self, event: FallbackEvent) -> None:
        self.fallbacks.append(event)

    def record_failure(self, report_type: str, error: Exception) -> None:
        self.failures.append({"report_type": report_type, "error": error})
