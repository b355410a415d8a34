"""Structured logs and in-process metrics.

Every log line is a single JSON object carrying the request id plus whichever
of ``order_id``, ``reminder_type`` and ``actor_id`` the caller knows, so one
order can be followed across the bot, the dashboard and the daily run.
Metrics are counters and duration samples held in memory and served on
``/metrics``; they reset when the process restarts.
"""

import json
import logging
import threading
import time
from collections import defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

LOGGER_NAME = "orderdesk"
CONTEXT_FIELDS = ("order_id", "reminder_type", "actor_id")

# Reported as 0 until first incremented so a quiet day still shows the series
BUSINESS_COUNTERS = (
    "orders_created_total",
    "orders_auto_cancelled_total",
    "payments_committed_total",
    "payments_pending_confirmation_total",
    "payments_rejected_total",
    "reminder_runs_total",
    "reminders_sent_total",
    "reminders_failed_total",
    "order_lock_contention_total",
)

_request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None) or _request_id_ctx.get(),
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        details = getattr(record, "details", None)
        if details:
            payload["details"] = details
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


@dataclass
class MetricsSnapshot:
    counters: dict[str, int]
    timings: dict[str, dict[str, float]]


def _summarize_samples(values: list[float]) -> dict[str, float]:
    return {
        "count": float(len(values)),
        "avg_s": sum(values) / len(values),
        "max_s": max(values),
        "last_s": values[-1],
    }


class MetricsStore:
    """Thread-safe counters and timings; sync endpoints run in a thread pool."""

    def __init__(self, seeded_counters: tuple[str, ...] = ()) -> None:
        self._seeded_counters = seeded_counters
        self._lock = threading.Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def observe(self, name: str, value_s: float) -> None:
        with self._lock:
            self._timings[name].append(value_s)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            counters = dict.fromkeys(self._seeded_counters, 0)
            counters.update(self._counters)
            samples = {name: list(values) for name, values in self._timings.items() if values}
        timings = {name: _summarize_samples(values) for name, values in samples.items()}
        return MetricsSnapshot(counters=counters, timings=timings)


metrics_store = MetricsStore(seeded_counters=BUSINESS_COUNTERS)


def set_request_id(request_id: str) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> str | None:
    return _request_id_ctx.get()


def log_event(
    message: str,
    *,
    order_id: str | None = None,
    reminder_type: str | None = None,
    actor_id: str | None = None,
    level: int = logging.INFO,
    exc_info: bool = False,
    **details: object,
) -> None:
    """Log ``message`` with the order context; extra keyword arguments land in ``details``."""
    logging.getLogger(LOGGER_NAME).log(
        level,
        message,
        exc_info=exc_info,
        extra={
            "request_id": get_request_id(),
            "order_id": order_id,
            "reminder_type": reminder_type,
            "actor_id": actor_id,
            "details": details or None,
        },
    )


@contextmanager
def observe_timing(metric_name: str) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        metrics_store.observe(metric_name, time.perf_counter() - start)
