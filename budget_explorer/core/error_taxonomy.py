"""
Error Taxonomy for the Budget Explorer

The aggregation engine itself never raises for data conditions: a missing
year, an unknown category or missing texts are modelled as absence (None).
Exceptions only exist at the edges (loading ledgers, reading configuration),
and are classified here with:
- Error categories aligned to pipeline phases
- Recoverability indicators
- A user-facing message
"""

from enum import Enum, auto
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import logging
import traceback

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Systematic classification of failure modes."""
    # Loading
    LEDGER_SOURCE_UNAVAILABLE = auto()
    LEDGER_FORMAT_ERROR = auto()
    NO_LEDGER_DATA = auto()

    # Requests
    UNKNOWN_CATEGORY = auto()

    # System Errors
    CONFIGURATION_ERROR = auto()
    UNKNOWN_ERROR = auto()


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


USER_MESSAGES = {
    ErrorCategory.LEDGER_SOURCE_UNAVAILABLE: "Ledger data source is temporarily unavailable.",
    ErrorCategory.LEDGER_FORMAT_ERROR: "The ledger file could not be read.",
    ErrorCategory.NO_LEDGER_DATA: "No ledger data is available for this year.",
    ErrorCategory.UNKNOWN_CATEGORY: "This budget category does not exist.",
    ErrorCategory.CONFIGURATION_ERROR: "The explorer is misconfigured.",
}


@dataclass
class ClassifiedError:
    """A classified error with full context."""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    recoverable: bool

    original_exception: Optional[Exception] = None
    pipeline_phase: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    stack_trace: Optional[str] = None
    user_message: Optional[str] = None

    def __post_init__(self):
        if self.original_exception and not self.stack_trace:
            self.stack_trace = ''.join(traceback.format_exception(
                type(self.original_exception),
                self.original_exception,
                self.original_exception.__traceback__
            ))

        if not self.user_message:
            self.user_message = USER_MESSAGES.get(
                self.category, f"An error occurred: {self.message}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.name,
            "severity": self.severity.value,
            "message": self.message,
            "user_message": self.user_message,
            "recoverable": self.recoverable,
            "pipeline_phase": self.pipeline_phase,
            "context": self.context,
        }


class ExplorerError(Exception):
    """Base exception for explorer errors with classification."""

    category = ErrorCategory.UNKNOWN_ERROR
    severity = ErrorSeverity.MEDIUM
    recoverable = False

    def __init__(self, message: str, context: Dict[str, Any] = None):
        super().__init__(message)
        self.context = context or {}

    def classify(self) -> ClassifiedError:
        return ClassifiedError(
            category=self.category,
            severity=self.severity,
            message=str(self),
            recoverable=self.recoverable,
            original_exception=self,
            context=dict(self.context),
        )


class LedgerSourceError(ExplorerError):
    """Ledger could not be fetched or opened."""
    category = ErrorCategory.LEDGER_SOURCE_UNAVAILABLE
    severity = ErrorSeverity.HIGH
    recoverable = True


class LedgerFormatError(ExplorerError):
    """Ledger was read but its columns or values are unusable."""
    category = ErrorCategory.LEDGER_FORMAT_ERROR
    severity = ErrorSeverity.HIGH


class ConfigurationError(ExplorerError):
    """A configuration file is missing or malformed."""
    category = ErrorCategory.CONFIGURATION_ERROR
    severity = ErrorSeverity.CRITICAL


def classify_error(
    exception: Exception,
    pipeline_phase: str = None,
    context: Dict[str, Any] = None,
) -> ClassifiedError:
    """Classify an exception into a structured error."""
    context = context or {}

    if isinstance(exception, ExplorerError):
        classified = exception.classify()
        classified.pipeline_phase = pipeline_phase
        classified.context.update(context)
        return classified

    if isinstance(exception, FileNotFoundError):
        return ClassifiedError(
            category=ErrorCategory.LEDGER_SOURCE_UNAVAILABLE,
            severity=ErrorSeverity.HIGH,
            message=str(exception),
            recoverable=False,
            original_exception=exception,
            pipeline_phase=pipeline_phase,
            context=context,
        )

    error_str = str(exception).lower()

    if "timeout" in error_str or "timed out" in error_str:
        return ClassifiedError(
            category=ErrorCategory.LEDGER_SOURCE_UNAVAILABLE,
            severity=ErrorSeverity.MEDIUM,
            message=str(exception),
            recoverable=True,
            original_exception=exception,
            pipeline_phase=pipeline_phase,
            context=context,
        )

    # Default
    return ClassifiedError(
        category=ErrorCategory.UNKNOWN_ERROR,
        severity=ErrorSeverity.HIGH,
        message=str(exception),
        recoverable=False,
        original_exception=exception,
        pipeline_phase=pipeline_phase,
        context=context,
    )
