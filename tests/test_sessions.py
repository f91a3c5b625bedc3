"""Tests for the session registry."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

from frontdesk.sessions import SessionRegistry


def _factory():
    return MagicMock(side_effect=lambda: MagicMock())


class TestSessionRegistry:
    def test_same_id_returns_same_agent(self):
        registry = SessionRegistry(factory=_factory())
        assert registry.get_or_create("s1") is registry.get_or_create("s1")
        assert len(registry) == 1

    def test_different_ids_get_different_agents(self):
        factory = _factory()
        registry = SessionRegistry(factory=factory)
        assert registry.get_or_create("s1") is not registry.get_or_create("s2")
        assert factory.call_count == 2
        assert sorted(registry.session_ids()) == ["s1", "s2"]

    def test_get_does_not_create(self):
        factory = _factory()
        registry = SessionRegistry(factory=factory)
        assert registry.get("s1") is None
        assert "s1" not in registry
        factory.assert_not_called()

    def test_concurrent_first_access_creates_one_agent(self):
        created = []

        def slow_factory():
            time.sleep(0.01)
            agent = MagicMock()
            created.append(agent)
            return agent

        registry = SessionRegistry(factory=slow_factory)
        results = []
        threads = [
            threading.Thread(target=lambda: results.append(registry.get_or_create("same")))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert all(agent is created[0] for agent in results)
