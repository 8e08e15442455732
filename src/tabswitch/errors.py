# =============================================================================
# Error Handling Types (Result + ErrorReport)
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar('T')


class ErrorType(Enum):
    FILE_NOT_FOUND = "file_not_found"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    PERMISSION_ERROR = "permission_error"
    CACHE_ERROR = "cache_error"


class CacheCorruptError(ValueError):
    """A cache entry exists but its content is not a resolved tab mapping."""


@dataclass
class Error:
    error_type: ErrorType
    message: str
    context: dict = field(default_factory=dict)
    original_exception: Exception = None


@dataclass
class Result(Generic[T]):
    success: bool
    value: T = None
    error: Error = None

    @staticmethod
    def ok(value: T) -> 'Result[T]':
        return Result(success=True, value=value)

    @staticmethod
    def err(error: Error) -> 'Result[T]':
        return Result(success=False, error=error)

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success


@dataclass
class ErrorReport:
    """Errors and warnings collected during one configuration load."""

    errors: list[Error] = field(default_factory=list)
    warnings: list[Error] = field(default_factory=list)

    @staticmethod
    def _bind(error: Error, operation: str, status: str):
        # bind() keeps the message unformatted; cache reprs may contain braces
        extra = {
            **error.context,
            "operation": operation,
            "status": status,
            "error_type": error.error_type.value,
        }
        if error.original_exception is not None:
            extra["exception_type"] = type(error.original_exception).__name__
        return logger.bind(**extra)

    def add_error(self, error: Error, operation: str = "error_report"):
        self.errors.append(error)
        self._bind(error, operation, "error").error(error.message)

    def add_warning(self, error: Error, operation: str = "error_report"):
        self.warnings.append(error)
        self._bind(error, operation, "warning").warning(error.message)

    def collect_result(self, result: Result) -> bool:
        """Collect error from Result into report if failed."""
        if result.is_err():
            self.add_error(result.error)
            return False
        return True

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def log_summary(self, op_trace_id: str):
        logger.debug(
            "Operation complete",
            operation="error_report",
            status="complete",
            trace_id=op_trace_id,
            metrics={
                "total_errors": len(self.errors),
                "total_warnings": len(self.warnings)
            }
        )
