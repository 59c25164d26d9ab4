"""
Logging Infrastructure

Logging setup and the error reporter used for absorbed failures.
"""

from .error_handler import (
    ErrorCategory,
    ErrorReport,
    ErrorReporter,
    ErrorSeverity,
    absorb_errors,
    error_reporter,
    get_error_statistics,
)
from .logger_config import (
    LoggingConfigOptions,
    get_structured_logger,
    setup_logging,
)

__all__ = [
    "ErrorCategory",
    "ErrorReport",
    "ErrorReporter",
    "ErrorSeverity",
    "absorb_errors",
    "error_reporter",
    "get_error_statistics",
    "LoggingConfigOptions",
    "get_structured_logger",
    "setup_logging",
]
