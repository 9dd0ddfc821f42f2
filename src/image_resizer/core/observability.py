"""Observability utilities for logging and metrics."""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from .logging_config import setup_logger


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogContext:
    """Context information for structured logging."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""
    component: str = ""
    fingerprint: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_operation(self, operation: str) -> "LogContext":
        """Create new context with operation set."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=operation,
            component=self.component,
            fingerprint=self.fingerprint,
            metadata=self.metadata.copy(),
        )

    def with_fingerprint(self, fingerprint: str) -> "LogContext":
        """Create new context bound to a cache fingerprint."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            fingerprint=fingerprint,
            metadata=self.metadata.copy(),
        )

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional metadata."""
        new_metadata = self.metadata.copy()
        new_metadata.update(kwargs)
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            fingerprint=self.fingerprint,
            metadata=new_metadata,
        )


class StructuredLogger:
    """Structured logger with context support."""

    def __init__(self, name: str, level: Optional[str] = None):
        self._logger = setup_logger(name, level=level)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        **kwargs: Any,
    ) -> None:
        """Internal logging method with context support."""
        if context:
            formatted_message = f"[{context.correlation_id}] {message}"
            if context.operation:
                formatted_message = f"[{context.operation}] {formatted_message}"

            details = dict(context.metadata)
            if context.fingerprint:
                details["fingerprint"] = context.fingerprint[:12]
            details.update(kwargs)

            if details:
                metadata_str = ", ".join(f"{k}={v}" for k, v in details.items())
                formatted_message = f"{formatted_message} ({metadata_str})"
        elif kwargs:
            metadata_str = ", ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted_message = f"{message} ({metadata_str})"
        else:
            formatted_message = message

        self._logger.log(getattr(logging, level.value), formatted_message)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log info message."""
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        """Log error message."""
        self._log(LogLevel.ERROR, message, context, **kwargs)


@dataclass
class PerformanceMetrics:
    """Performance metrics for operations."""

    operation: str
    start_time: float
    end_time: float
    success: bool
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        """Calculate operation duration in seconds."""
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        """Calculate operation duration in milliseconds."""
        return self.duration * 1000


@dataclass
class OperationStats:
    """Running totals for one operation; constant size however often it runs."""

    total: int = 0
    successful: int = 0
    total_duration: float = 0.0
    min_duration: Optional[float] = None
    max_duration: float = 0.0
    last_error: Optional[str] = None
    error_types: Dict[str, int] = field(default_factory=dict)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    def add(self, metric: PerformanceMetrics) -> None:
        duration = metric.duration
        self.total += 1
        self.total_duration += duration
        self.max_duration = max(self.max_duration, duration)
        if self.min_duration is None or duration < self.min_duration:
            self.min_duration = duration

        if metric.success:
            self.successful += 1
            return

        if metric.error_message is not None:
            self.last_error = metric.error_message
        error_type = metric.metadata.get("error")
        if error_type:
            self.error_types[error_type] = self.error_types.get(error_type, 0) + 1


class MetricsCollector:
    """
    Aggregates performance metrics per operation.

    Individual measurements are folded into OperationStats and discarded, so
    a long-running server keeps one entry per operation name.
    """

    def __init__(self):
        self._stats: Dict[str, OperationStats] = {}

    def record_metric(self, metric: PerformanceMetrics) -> None:
        """Fold a performance metric into its operation's totals."""
        self._stats.setdefault(metric.operation, OperationStats()).add(metric)

    def record_event(self, operation: str, success: bool = True, **metadata: Any) -> None:
        """Record an instantaneous event such as a cache hit."""
        now = time.time()
        self.record_metric(
            PerformanceMetrics(
                operation=operation,
                start_time=now,
                end_time=now,
                success=success,
                metadata=metadata,
            )
        )

    @property
    def operations(self) -> List[str]:
        return sorted(self._stats)

    def get_stats(self, operation: str) -> Optional[OperationStats]:
        return self._stats.get(operation)

    def count(self, operation: str, success: Optional[bool] = None) -> int:
        stats = self._stats.get(operation)
        if stats is None:
            return 0
        if success is None:
            return stats.total
        return stats.successful if success else stats.failed

    def get_summary(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics, for one operation or across all of them."""
        if operation:
            selected = [self._stats[operation]] if operation in self._stats else []
        else:
            selected = list(self._stats.values())

        total = sum(s.total for s in selected)
        if not total:
            return {}

        successful = sum(s.successful for s in selected)
        total_duration = sum(s.total_duration for s in selected)

        return {
            "total_operations": total,
            "successful_operations": successful,
            "failed_operations": total - successful,
            "success_rate": successful / total,
            "avg_duration": total_duration / total,
            "min_duration": min(s.min_duration or 0.0 for s in selected),
            "max_duration": max(s.max_duration for s in selected),
            "total_duration": total_duration,
        }

    def clear_metrics(self) -> None:
        """Clear all recorded metrics."""
        self._stats.clear()


@asynccontextmanager
async def track_operation(
    operation: str,
    logger: Optional[Any] = None,
    metrics_collector: Optional[MetricsCollector] = None,
    context: Optional[LogContext] = None,
) -> AsyncIterator[LogContext]:
    """Time an awaited block, logging its outcome and recording a metric."""
    start_time = time.time()
    operation_context = (context or LogContext()).with_operation(operation)
    success = False
    error_message = None
    metadata: Dict[str, Any] = {}

    try:
        yield operation_context
        success = True
    except Exception as exc:
        error_message = str(exc)
        metadata["error"] = type(exc).__name__
        raise
    finally:
        end_time = time.time()
        if logger:
            if success:
                logger.debug(
                    f"Completed {operation}",
                    operation_context,
                    duration_ms=round((end_time - start_time) * 1000, 2),
                )
            else:
                logger.error(f"Failed {operation}: {error_message}", operation_context)

        if metrics_collector:
            metrics_collector.record_metric(
                PerformanceMetrics(
                    operation=operation,
                    start_time=start_time,
                    end_time=end_time,
                    success=success,
                    error_message=error_message,
                    metadata=metadata,
                )
            )
