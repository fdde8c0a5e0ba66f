"""Exception classes for the workflow analytics engine."""

from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    DATA_VALIDATION = "data_validation"
    DATA_COLLECTION = "data_collection"
    DATA_PROCESSING = "data_processing"
    AGGREGATION = "aggregation"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


class AnalyticsError(Exception):
    """Base exception for the analytics engine."""

    def __init__(self,
                 message: str,
                 severity: ErrorSeverity = ErrorSeverity.MEDIUM,
                 category: ErrorCategory = ErrorCategory.SYSTEM,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.recoverable = True


class ValidationError(AnalyticsError):
    """Raised when a report request is malformed or misses mandatory input."""

    def __init__(self,
                 message: str,
                 field_name: Optional[str] = None,
                 validation_errors: Optional[List[str]] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.DATA_VALIDATION,
            context={"field": field_name} if field_name else None
        )
        self.field_name = field_name
        self.validation_errors = validation_errors or [message]
        self.recoverable = False  # Caller has to fix the request


class DataSourceError(AnalyticsError):
    """Raised by a data source when a record set cannot be fetched."""

    def __init__(self,
                 message: str,
                 record_set: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.DATA_COLLECTION,
            context={"record_set": record_set} if record_set else None
        )
        self.record_set = record_set
        self.original_error = original_error


class PartialDataError(AnalyticsError):
    """Raised when a single metric group fails; recovered with the group default."""

    def __init__(self,
                 message: str,
                 group: str,
                 original_error: Optional[BaseException] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.DATA_PROCESSING,
            context={"group": group}
        )
        self.group = group
        self.original_error = original_error
        self.recoverable = True


class AggregationError(AnalyticsError):
    """Raised when already-gathered metric groups cannot be merged into a report."""

    def __init__(self,
                 message: str,
                 report_type: Optional[str] = None,
                 stage: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.AGGREGATION,
            context={"report_type": report_type, "stage": stage}
        )
        self.report_type = report_type
        self.stage = stage
        self.original_error = original_error
        self.recoverable = False
