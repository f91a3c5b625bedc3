"""FastAPI route definitions for the chat agent API."""

from __future__ import annotations

import asyncio
import json
import logging
import queue
from collections.abc import AsyncIterator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from frontdesk.agent import AppointmentAgent, CompletionServiceError, chunk_text
from frontdesk.api.schemas import (
    ChatRequest,
    ChatResponse,
    HealthResponse,
    HistoryMessage,
    HistoryResponse,
    LogsResponse,
    ResetResponse,
    SessionRequest,
    SessionsResponse,
)
from frontdesk.conversation import ConversationError, to_dict
from frontdesk.services.log_broadcaster import broadcaster
from frontdesk.sessions import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

LOG_STREAM_KEEPALIVE_SECONDS = 15.0
LOG_STREAM_POLL_SECONDS = 1.0


def _get_sessions(request: Request) -> SessionRegistry:
    """Retrieve the session registry created by the server lifespan."""
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return sessions


async def _run_turn(http_request: Request, func, *args) -> str:
    """Run a blocking agent call off the event loop and map its failures.

    The agent talks to Anthropic and to the EHR backend synchronously, so it
    runs in the default thread pool; turns for different sessions proceed
    in parallel while each agent's own lock serializes its session.
    """
    request_id = getattr(http_request.state, "request_id", "?")
    try:
        return await asyncio.to_thread(func, *args)
    except CompletionServiceError as e:
        logger.error("[%s] Completion service failed: %s", request_id, e)
        raise HTTPException(
            status_code=502,
            detail="The assistant is temporarily unavailable. Please try again.",
        ) from e
    except ConversationError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except Exception as e:
        # Full traceback stays server-side; clients get a generic message.
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the agent and get its reply.

    The session_id selects (or creates) the conversation the message
    belongs to.
    """
    agent = _get_sessions(http_request).get_or_create(request.session_id)
    logger.info("Chat message for session %s: %r", request.session_id, request.message[:100])
    reply = await _run_turn(http_request, agent.send_message, request.message)
    return ChatResponse(reply=reply, session_id=request.session_id)


@router.post("/chat/greeting", response_model=ChatResponse)
async def greeting(request: SessionRequest, http_request: Request):
    """Return the assistant's opening line for a session."""
    agent = _get_sessions(http_request).get_or_create(request.session_id)
    reply = await _run_turn(http_request, agent.get_initial_greeting)
    return ChatResponse(reply=reply, session_id=request.session_id)


@router.post("/chat/retry", response_model=ChatResponse)
async def retry(request: SessionRequest, http_request: Request):
    """Retry a session's last turn after a failed completion."""
    agent = _get_sessions(http_request).get(request.session_id)
    if agent is None:
        raise HTTPException(status_code=404, detail="Unknown session.")
    reply = await _run_turn(http_request, agent.retry_pending_turn)
    return ChatResponse(reply=reply, session_id=request.session_id)


@router.post("/chat/stream")
async def chat_stream(request: ChatRequest, http_request: Request):
    """Like ``/chat`` but the reply body arrives in word-sized fragments."""
    agent: AppointmentAgent = _get_sessions(http_request).get_or_create(request.session_id)
    reply = await _run_turn(http_request, agent.send_message, request.message)
    return StreamingResponse(
        chunk_text(reply),
        media_type="text/plain; charset=utf-8",
        headers={"X-Session-ID": request.session_id},
    )


@router.post("/chat/reset", response_model=ResetResponse)
async def reset(request: SessionRequest, http_request: Request):
    """Clear a session's conversation.  Unknown sessions are left alone."""
    agent = _get_sessions(http_request).get(request.session_id)
    if agent is not None:
        await asyncio.to_thread(agent.reset_conversation)
        logger.info("Reset conversation for session %s", request.session_id)
    return ResetResponse(session_id=request.session_id)


@router.get("/chat/history/{session_id}", response_model=HistoryResponse)
async def history(session_id: str, http_request: Request):
    """Return a session's messages (without the system prompt)."""
    agent = _get_sessions(http_request).get(session_id)
    messages = agent.get_conversation_history() if agent is not None else []
    return HistoryResponse(
        session_id=session_id,
        messages=[HistoryMessage(**to_dict(m)) for m in messages],
    )


@router.get("/chat/sessions", response_model=SessionsResponse)
async def sessions(http_request: Request):
    """List active session ids (debugging aid)."""
    ids = _get_sessions(http_request).session_ids()
    return SessionsResponse(sessions=ids, count=len(ids))


@router.get("/logs", response_model=LogsResponse)
async def recent_logs(limit: int = Query(100, ge=1, le=1000)):
    """Most recent agent log entries, oldest first."""
    return LogsResponse.from_entries(broadcaster.recent(limit))


async def _log_events(request: Request, subscription: queue.Queue) -> AsyncIterator[str]:
    """Relay queued entries as SSE frames until the client goes away.

    The queue is polled in short waits off the event loop, so a disconnect
    is noticed within ``LOG_STREAM_POLL_SECONDS``.
    """
    idle = 0.0
    try:
        while not await request.is_disconnected():
            try:
                entry = await asyncio.to_thread(
                    subscription.get, timeout=LOG_STREAM_POLL_SECONDS,
                )
            except queue.Empty:
                idle += LOG_STREAM_POLL_SECONDS
                if idle >= LOG_STREAM_KEEPALIVE_SECONDS:
                    idle = 0.0
                    yield ": keepalive\n\n"
                continue
            idle = 0.0
            yield f"data: {json.dumps(entry)}\n\n"
    finally:
        broadcaster.unsubscribe(subscription)


@router.get("/logs/stream")
async def stream_logs(request: Request):
    """Server-sent events feed of new log entries."""
    return StreamingResponse(
        _log_events(request, broadcaster.subscribe()),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
