"""
Module: observability.py
Description: Logging and metrics tracking for Finance Tracker.

Features:
    - Structured logging with key=value context fields
    - Timing decorators for performance monitoring
    - In-memory metrics exposed on /metrics

Usage:
    from services.observability import logger, metrics, timed

    @timed("insights.generate")
    async def generate(expenses, income):
        logger.info("Generating insights", expenses=len(expenses))
        ...

Author: Finance Tracker Team
"""

import asyncio
import time
import logging
import functools
from datetime import datetime
from typing import Dict, Any, Optional, Callable
from collections import defaultdict
from contextlib import contextmanager


# =============================================================================
# Structured Logger
# =============================================================================

class StructuredLogger:
    """Thin wrapper over logging.Logger that appends key=value fields."""

    def __init__(self, name: str = "finance-tracker"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(logging.INFO)
            formatter = logging.Formatter(
                '%(asctime)s | %(levelname)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _format_message(self, message: str, **kwargs) -> str:
        if kwargs:
            field_str = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} | {field_str}"
        return message

    def info(self, message: str, **kwargs) -> None:
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs) -> None:
        self.logger.warning(self._format_message(message, **kwargs))

    def error(self, message: str, **kwargs) -> None:
        self.logger.error(self._format_message(message, **kwargs))

    def debug(self, message: str, **kwargs) -> None:
        self.logger.debug(self._format_message(message, **kwargs))

    def exception(self, message: str, **kwargs) -> None:
        """Log with the active traceback attached."""
        self.logger.exception(self._format_message(message, **kwargs))


# =============================================================================
# Metrics Collector
# =============================================================================

class MetricsCollector:
    """
    Simple in-memory counters and timings.

    Note: per-process only. Replace with a Prometheus/StatsD client when
    running more than one worker.
    """

    def __init__(self):
        self.counters: Dict[str, int] = defaultdict(int)
        self.timings: Dict[str, list] = defaultdict(list)
        self._start_time = datetime.utcnow()

    def increment(self, name: str, value: int = 1, tags: Dict[str, str] = None) -> None:
        key = self._make_key(name, tags)
        self.counters[key] += value

    def timing(self, name: str, duration_ms: float, tags: Dict[str, str] = None) -> None:
        key = self._make_key(name, tags)
        self.timings[key].append(duration_ms)
        # Keep only last 1000 measurements
        if len(self.timings[key]) > 1000:
            self.timings[key] = self.timings[key][-1000:]

    def _make_key(self, name: str, tags: Optional[Dict[str, str]] = None) -> str:
        if tags:
            tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
            return f"{name}:{tag_str}"
        return name

    def get_summary(self) -> Dict[str, Any]:
        """Get summary of all metrics."""
        summary = {
            "uptime_seconds": (datetime.utcnow() - self._start_time).total_seconds(),
            "counters": dict(self.counters),
            "timings": {},
        }

        for name, values in self.timings.items():
            if values:
                ordered = sorted(values)
                summary["timings"][name] = {
                    "count": len(values),
                    "avg_ms": sum(values) / len(values),
                    "min_ms": ordered[0],
                    "max_ms": ordered[-1],
                    "p50_ms": ordered[len(values) // 2],
                    "p95_ms": ordered[int(len(values) * 0.95)] if len(values) >= 20 else None,
                }

        return summary


# =============================================================================
# Timing Decorators
# =============================================================================

def timed(name: str = None):
    """
    Decorator to time function execution and record metrics.

    Records `<name>.success` / `<name>.error` counters plus a timing entry.

    Example:
        @timed("categorize")
        async def categorize(description, kind):
            ...
    """
    def decorator(func: Callable) -> Callable:
        metric_name = name or func.__name__

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                metrics.increment(f"{metric_name}.success")
                return result
            except Exception:
                metrics.increment(f"{metric_name}.error")
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                metrics.timing(metric_name, duration_ms)
                logger.debug(f"{metric_name} completed", duration_ms=f"{duration_ms:.2f}")

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                metrics.increment(f"{metric_name}.success")
                return result
            except Exception:
                metrics.increment(f"{metric_name}.error")
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                metrics.timing(metric_name, duration_ms)
                logger.debug(f"{metric_name} completed", duration_ms=f"{duration_ms:.2f}")

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@contextmanager
def timed_block(name: str):
    """
    Context manager for timing code blocks.

    Example:
        with timed_block("insights.fetch"):
            rows = store.list(Expense, query)
    """
    start = time.perf_counter()
    try:
        yield
        metrics.increment(f"{name}.success")
    except Exception:
        metrics.increment(f"{name}.error")
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        metrics.timing(name, duration_ms)


# =============================================================================
# Global Instances
# =============================================================================

logger = StructuredLogger()

metrics = MetricsCollector()


# =============================================================================
# Convenience Functions
# =============================================================================

def log_list_request(resource: str, user_id: str, filter_name: Optional[str], limit: Optional[int]) -> None:
    """Log a filtered list request."""
    logger.info(
        "List request", resource=resource, user=user_id[:8],
        filter=filter_name or "-", limit=limit if limit is not None else "-",
    )
    metrics.increment("list.requests", tags={"resource": resource})


def log_openai_call(endpoint: str, tokens: int, duration_ms: float) -> None:
    """Log an OpenAI API call."""
    logger.debug("OpenAI API call", endpoint=endpoint, tokens=tokens, duration_ms=f"{duration_ms:.2f}")
    metrics.increment("openai.calls")
    metrics.increment("openai.tokens", tokens)
    metrics.timing("openai.latency", duration_ms)
