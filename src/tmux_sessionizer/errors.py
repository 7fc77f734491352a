# =============================================================================
# Error Handling Types (Result + ErrorReport)
# =============================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class ErrorType(Enum):
    UNREADABLE_PATH = "unreadable_path"
    GIT_PROBE_FAILURE = "git_probe_failure"
    AMBIGUOUS_SELECTION = "ambiguous_selection"
    NO_MATCH = "no_match"
    FILE_NOT_FOUND = "file_not_found"
    FILE_WRITE_ERROR = "file_write_error"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"
    PICKER_ERROR = "picker_error"
    SESSION_ERROR = "session_error"


@dataclass
class Error:
    error_type: ErrorType
    message: str
    context: dict = field(default_factory=dict)
    original_exception: Exception | None = None


@dataclass
class Result(Generic[T]):
    success: bool
    value: T | None = None
    error: Error | None = None

    @staticmethod
    def ok(value: T) -> "Result[T]":
        return Result(success=True, value=value)

    @staticmethod
    def err(error: Error) -> "Result[T]":
        return Result(success=False, error=error)

    def is_ok(self) -> bool:
        return self.success

    def is_err(self) -> bool:
        return not self.success


@dataclass
class ErrorReport:
    """Per-scan collection of absorbed errors.

    Only the thread that owns the report may add to it; scan workers return
    their errors and the caller merges them after the pool has joined.
    """

    warnings: list[Error] = field(default_factory=list)

    def add_warning(self, error: Error):
        self.warnings.append(error)
        logger.warning(
            error.message,
            operation="error_report",
            status="warning",
            error_type=error.error_type.value,
            **error.context
        )

    def extend_warnings(self, errors: list[Error]):
        for error in errors:
            self.add_warning(error)

    def log_summary(self, op_trace_id: str):
        logger.info(
            "Operation complete",
            operation="error_report",
            status="complete",
            trace_id=op_trace_id,
            metrics={"total_warnings": len(self.warnings)}
        )
