"""
cachewise — Observability

Structured JSON logging and in-process counters for cache sites.

Usage:
    from cachewise.observability import get_observability, setup_logging

    setup_logging("DEBUG")
    obs = get_observability()
    obs.increment("site.hit", tags={"namespace": "user"})
"""

import contextvars
import json
import logging
import threading
from collections import Counter
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

# Site currently executing in this task, added to every JSON log line
_site_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("cache_site", default=None)

_RESERVED_RECORD_KEYS = frozenset(
    (
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    )
)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, carrying the active cache site and any extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        """Render the record and its extras as a single JSON line."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        site = _site_ctx.get()
        if site:
            log_data["cache_site"] = site

        # Extra fields passed through logger.xxx(..., extra={...})
        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str | int = logging.INFO, json_format: bool = True) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Log level name or number
        json_format: Emit one JSON object per line when True

    Returns:
        The configured "cachewise" logger
    """
    logger = logging.getLogger("cachewise")
    logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)

    return logger


@contextmanager
def site_context(site: str) -> Generator[None, None, None]:
    """Mark log records emitted inside the block with the given site."""
    token = _site_ctx.set(site)
    try:
        yield
    finally:
        _site_ctx.reset(token)


def get_current_site() -> str | None:
    """Get the site currently executing in this context."""
    return _site_ctx.get()


class ObservabilityAdapter:
    """
    In-process counters for cache activity.

    Counters are keyed by metric name and a sorted tuple of tags so that
    "site.hit{namespace=user}" and "site.hit{namespace=order}" are tracked apart.
    """

    def __init__(self, enable_metrics: bool = True):
        self.enable_metrics = enable_metrics
        self._counters: Counter[tuple[str, tuple[tuple[str, str], ...]]] = Counter()
        self._lock = threading.Lock()

    def increment(
        self,
        metric: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """
        Add to the counter for metric and tags.

        Args:
            metric: Metric name (e.g., "site.hit")
            value: Amount to add
            tags: Labels distinguishing this counter, usually namespace and kind
        """
        if not self.enable_metrics:
            return

        key = (metric, tuple(sorted((tags or {}).items())))
        with self._lock:
            self._counters[key] += value

    def get_count(self, metric: str, tags: dict[str, str] | None = None) -> int:
        """Current value of one counter; tags must match exactly."""
        return self._counters.get((metric, tuple(sorted((tags or {}).items()))), 0)

    def get_metrics(self, metric_name: str | None = None) -> list[dict[str, Any]]:
        """
        Snapshot of all counters.

        Args:
            metric_name: Optional filter by metric name

        Returns:
            List of {"name", "tags", "value"} dictionaries
        """
        with self._lock:
            items = list(self._counters.items())

        return [
            {"name": name, "tags": dict(tags), "value": value}
            for (name, tags), value in items
            if metric_name is None or name == metric_name
        ]

    def reset(self) -> None:
        """Drop every counter."""
        with self._lock:
            self._counters.clear()


_observability_adapter: ObservabilityAdapter | None = None


def get_observability() -> ObservabilityAdapter:
    """
    Shared adapter for the process, created on first use.

    Returns:
        The process-wide ObservabilityAdapter
    """
    global _observability_adapter

    if _observability_adapter is None:
        _observability_adapter = ObservabilityAdapter()

    return _observability_adapter


def initialize_observability(enable_metrics: bool = True) -> ObservabilityAdapter:
    """
    Replace the shared adapter with a fresh one.

    Args:
        enable_metrics: Enable counter collection

    Returns:
        The new shared ObservabilityAdapter
    """
    global _observability_adapter

    _observability_adapter = ObservabilityAdapter(enable_metrics=enable_metrics)

    return _observability_adapter
