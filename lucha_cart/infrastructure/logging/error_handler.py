"""
Error Handling

Classifies, logs and counts the errors the cart absorbs instead of raising:
storage that cannot be reached, writes that throw, stored state that cannot
be parsed, and UI listeners that fail.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import wraps
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification"""

    STORAGE = "storage"
    SERIALIZATION = "serialization"
    LISTENER = "listener"
    SYNC = "sync"
    SYSTEM = "system"


@dataclass
class ErrorReport:
    """A single absorbed error"""

    error: Exception
    category: ErrorCategory = ErrorCategory.SYSTEM
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    operation: str = "unknown"
    context: Optional[Dict[str, Any]] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class ErrorReporter:
    """Logs absorbed errors and keeps counters per category and severity"""

    MAX_RECENT = 50

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self.error_metrics = {
            "total_errors": 0,
            "errors_by_category": {},
            "errors_by_severity": {},
            "recent_errors": [],
        }

    def report_error(self, report: ErrorReport) -> None:
        """Record and log an absorbed error"""
        details = {
            "operation": report.operation,
            "error_type": type(report.error).__name__,
            "error_message": str(report.error),
            "category": report.category.value,
            "severity": report.severity.value,
            "timestamp": report.timestamp.isoformat(),
            **(report.context or {}),
        }

        with self._lock:
            self._update_metrics(details)

        self._log_error(report, details)

    def _update_metrics(self, details: Dict[str, Any]):
        self.error_metrics["total_errors"] += 1

        by_category = self.error_metrics["errors_by_category"]
        by_category[details["category"]] = by_category.get(details["category"], 0) + 1

        by_severity = self.error_metrics["errors_by_severity"]
        by_severity[details["severity"]] = by_severity.get(details["severity"], 0) + 1

        recent = self.error_metrics["recent_errors"]
        recent.append(details)
        if len(recent) > self.MAX_RECENT:
            recent.pop(0)

    def _log_error(self, report: ErrorReport, details: Dict[str, Any]):
        message = "cart: %(operation)s failed (%(category)s): %(error_type)s: %(error_message)s"
        extra = {"error_category": report.category.value}

        if report.severity == ErrorSeverity.CRITICAL:
            self.logger.critical(message, details, extra=extra)
        elif report.severity == ErrorSeverity.HIGH:
            self.logger.error(message, details, exc_info=report.error, extra=extra)
        elif report.severity == ErrorSeverity.MEDIUM:
            self.logger.warning(message, details, extra=extra)
        else:
            self.logger.info(message, details, extra=extra)

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics"""
        with self._lock:
            return {
                "total_errors": self.error_metrics["total_errors"],
                "errors_by_category": dict(self.error_metrics["errors_by_category"]),
                "errors_by_severity": dict(self.error_metrics["errors_by_severity"]),
                "recent_error_count": len(self.error_metrics["recent_errors"]),
            }

    def reset(self) -> None:
        """Clear all counters"""
        with self._lock:
            self.error_metrics["total_errors"] = 0
            self.error_metrics["errors_by_category"].clear()
            self.error_metrics["errors_by_severity"].clear()
            self.error_metrics["recent_errors"].clear()


error_reporter = ErrorReporter()


def absorb_errors(
    category: ErrorCategory = ErrorCategory.SYSTEM,
    operation: str = None,
    default: Any = None,
    severity: ErrorSeverity = ErrorSeverity.MEDIUM,
):
    """
    Decorator for environment-failure boundaries

    Any exception raised by the wrapped function is reported and the
    ``default`` value is returned in its place.
    """

    def decorator(func):
        op_name = operation or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:  # pylint: disable=broad-except
                error_reporter.report_error(
                    ErrorReport(
                        error=e,
                        category=category,
                        severity=severity,
                        operation=op_name,
                    )
                )
                return default

        return wrapper

    return decorator


def get_error_statistics() -> Dict[str, Any]:
    """Get global error statistics"""
    return error_reporter.get_error_statistics()
