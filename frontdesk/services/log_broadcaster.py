"""Real-time feed of the agent's log records.

A :class:`logging.Handler` attached to the ``frontdesk`` logger keeps a
bounded history of recent entries and pushes each new entry to every
subscribed queue.  The HTTP layer replays the history on ``GET /api/logs``
and streams new entries as server-sent events on ``GET /api/logs/stream``,
so an operator can watch tool calls and backend writes as they happen.

Subscriber queues are bounded; a subscriber that stops reading loses new
entries instead of growing without limit.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from datetime import UTC, datetime
from typing import Any

from frontdesk.config import LOG_HISTORY_SIZE

SUBSCRIBER_QUEUE_SIZE = 500


class LogBroadcaster(logging.Handler):
    """Fan-out logging handler with a replayable history."""

    def __init__(self, history_size: int = LOG_HISTORY_SIZE, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._history: deque[dict[str, Any]] = deque(maxlen=history_size)
        self._subscribers: list[queue.Queue] = []
        self._subscribers_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
                "level": record.levelname,
                "source": record.name,
                "message": record.getMessage(),
            }
        except Exception:
            self.handleError(record)
            return

        with self._subscribers_lock:
            self._history.append(entry)
            subscribers = list(self._subscribers)
        for q in subscribers:
            try:
                q.put_nowait(entry)
            except queue.Full:
                pass

    # ── Subscriptions ────────────────────────────────────────────────

    def subscribe(self) -> queue.Queue:
        q: queue.Queue = queue.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        with self._subscribers_lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._subscribers_lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    @property
    def subscriber_count(self) -> int:
        with self._subscribers_lock:
            return len(self._subscribers)

    def recent(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Return the most recent entries, oldest first."""
        with self._subscribers_lock:
            entries = list(self._history)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def clear(self) -> None:
        with self._subscribers_lock:
            self._history.clear()

    def install(self, logger_name: str = "frontdesk") -> None:
        """Attach to *logger_name* (idempotent).

        An unset logger level is raised to the handler's own, so records
        reach the feed even when the root logger is quieter.
        """
        target = logging.getLogger(logger_name)
        if target.level == logging.NOTSET:
            target.setLevel(self.level)
        if self not in target.handlers:
            target.addHandler(self)


broadcaster = LogBroadcaster()
