"""Exception hierarchy for programmer errors raised by the analytics engine.

Data-quality problems (malformed dates, inverted ranges, empty denominators)
are never raised; they surface through diagnostics counters and flags on the
aggregation result. Only misuse of the API raises.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from clinic_analytics.core.logging import get_logger

logger = get_logger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for the engine."""

    INVALID_INPUT = "INVALID_INPUT"
    INVALID_GRANULARITY = "INVALID_GRANULARITY"
    INVALID_DATE_RANGE_OPTION = "INVALID_DATE_RANGE_OPTION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AnalyticsException(Exception):
    """Base engine exception with error code and context."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.field = field
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for the rendering layer."""
        return {
            "detail": self.message,
            "error_code": self.error_code.value,
            "field": self.field,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }


class InvalidInputError(AnalyticsException, TypeError):
    """A required collection or argument was missing or of the wrong type."""

    def __init__(self, field: str, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or f"{field} must be a sequence of records, not None",
            error_code=ErrorCode.INVALID_INPUT,
            field=field,
            context=context,
        )


class InvalidGranularityError(AnalyticsException, ValueError):
    """Granularity value outside the supported enum."""

    def __init__(self, value: Any):
        super().__init__(
            message=f"Unsupported bucket granularity: {value!r}",
            error_code=ErrorCode.INVALID_GRANULARITY,
            field="granularity",
            context={"value": repr(value)},
        )


class InvalidDateRangeOptionError(AnalyticsException, ValueError):
    """Symbolic date range option outside the supported set."""

    def __init__(self, value: Any, allowed: Optional[list[str]] = None):
        super().__init__(
            message=f"Unsupported date range option: {value!r}",
            error_code=ErrorCode.INVALID_DATE_RANGE_OPTION,
            field="date_range",
            context={"value": repr(value), "allowed": allowed or []},
        )


def report_exception(exception: AnalyticsException) -> None:
    """Log a raised engine exception with its code and context."""
    logger.error(
        f"Analytics error: {exception.error_code.value}",
        message=exception.message,
        field=exception.field,
        context=exception.context,
    )
