"""Shared test fixtures for the FrontDesk test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ["METRICS_ENABLED"] = "false"


@pytest.fixture
def mock_response():
    """Factory fixture for creating mock httpx responses."""

    def _make(data, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        return mock

    return _make


@pytest.fixture
def tool_call_message():
    """Factory fixture for an assistant message requesting tool calls."""

    def _make(*calls: tuple[str, dict], content: str = "") -> AIMessage:
        return AIMessage(
            content=content,
            tool_calls=[
                {"name": name, "args": args, "id": f"call_{i}"}
                for i, (name, args) in enumerate(calls, start=1)
            ],
        )

    return _make
