"""CloudWatch custom metrics for the agent's outbound calls.

Every call that leaves the process (Anthropic completions, EHR backend
requests) and every tool execution is recorded as a count, a latency and,
on failure, an error count.

* Data points are buffered in memory under a lock.
* When ``METRICS_ENABLED=true`` a daemon thread flushes the buffer to
  CloudWatch every ``FLUSH_INTERVAL_SECONDS``; otherwise flushes only drop
  the buffer and the points are visible at DEBUG level.

Usage
-----
>>> from frontdesk.services.metrics import metrics
>>> with metrics.track("ehr", "GET /locations"):
...     client.list_locations()
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "FrontDesk"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch limit per PutMetricData call


class MetricsClient:
    """Buffers call metrics and publishes them to CloudWatch in batches."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3  # noqa: PLC0415

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Recording ─────────────────────────────────────────────────────

    def record(
        self,
        service: str,
        operation: str,
        *,
        latency_ms: float,
        error_type: str | None = None,
    ) -> None:
        """Record one call.  ``error_type`` set means the call failed."""
        now = datetime.now(UTC)
        status = "failure" if error_type else "success"
        service_dim = {"Name": "Service", "Value": service}

        points = [
            _point(
                "Calls/Count",
                [service_dim, {"Name": "Status", "Value": status}],
                1,
                "Count",
                now,
            ),
            _point(
                "Calls/Latency",
                [service_dim, {"Name": "Operation", "Value": operation}],
                latency_ms,
                "Milliseconds",
                now,
            ),
        ]
        if error_type:
            points.append(
                _point(
                    "Calls/Errors",
                    [service_dim, {"Name": "ErrorType", "Value": error_type}],
                    1,
                    "Count",
                    now,
                )
            )

        with self._lock:
            self._buffer.extend(points)
        logger.debug(
            "Metric: %s %s %s latency=%.1fms%s",
            service, operation, status, latency_ms,
            f" error={error_type}" if error_type else "",
        )

    @contextmanager
    def track(self, service: str, operation: str) -> Iterator[None]:
        """Time the enclosed block and record it; exceptions are re-raised."""
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            self.record(service, operation, latency_ms=elapsed, error_type=type(exc).__name__)
            raise
        elapsed = (time.perf_counter() - t0) * 1000
        self.record(service, operation, latency_ms=elapsed)

    # ── Publishing ────────────────────────────────────────────────────

    def flush(self) -> int:
        """Send buffered data points to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (disabled): %d points dropped", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        threading.Thread(target=_loop, daemon=True, name="metrics-flush").start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


def _point(
    name: str,
    dimensions: list[dict[str, str]],
    value: float,
    unit: str,
    timestamp: datetime,
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": dimensions,
        "Timestamp": timestamp,
        "Value": value,
        "Unit": unit,
    }


metrics = MetricsClient()
