"""Pydantic schemas for the chat API endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend."""

    message: str = Field(..., min_length=1, max_length=2000, description="The user's message")
    session_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique session identifier for conversation continuity",
    )


class SessionRequest(BaseModel):
    """Body for session-level actions (greeting, reset)."""

    session_id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique session identifier for conversation continuity",
    )


class ChatResponse(BaseModel):
    """Response from the agent."""

    reply: str = Field(..., description="The agent's response message")
    session_id: str = Field(..., description="The session ID for this conversation")


class ResetResponse(BaseModel):
    message: str = "Conversation reset successfully"
    session_id: str


class ToolCallOut(BaseModel):
    id: str
    name: str
    arguments: str


class HistoryMessage(BaseModel):
    role: str
    content: str
    tool_calls: list[ToolCallOut] | None = None
    tool_call_id: str | None = None


class HistoryResponse(BaseModel):
    session_id: str
    messages: list[HistoryMessage]


class SessionsResponse(BaseModel):
    sessions: list[str]
    count: int


class LogEntry(BaseModel):
    timestamp: str
    level: str
    source: str
    message: str


class LogsResponse(BaseModel):
    entries: list[LogEntry]

    @classmethod
    def from_entries(cls, entries: list[dict[str, Any]]) -> LogsResponse:
        return cls(entries=[LogEntry(**e) for e in entries])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "frontdesk-agent"
