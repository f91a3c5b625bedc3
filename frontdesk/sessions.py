"""Session id → agent registry.

Agents are created lazily on first reference and kept for the life of the
process; there is no idle expiry.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from frontdesk.agent import AppointmentAgent

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Thread-safe map of session ids to their :class:`AppointmentAgent`."""

    def __init__(self, factory: Callable[[], AppointmentAgent] = AppointmentAgent):
        self._factory = factory
        self._sessions: dict[str, AppointmentAgent] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str) -> AppointmentAgent:
        """Return the session's agent, creating it on first reference.

        Creation happens under the registry lock, so concurrent first
        messages for the same new id share one agent.
        """
        with self._lock:
            agent = self._sessions.get(session_id)
            if agent is None:
                agent = self._factory()
                self._sessions[session_id] = agent
                logger.info("Created new agent session: %s", session_id)
            return agent

    def get(self, session_id: str) -> AppointmentAgent | None:
        with self._lock:
            return self._sessions.get(session_id)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
