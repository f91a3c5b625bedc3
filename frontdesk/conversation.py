"""Per-session conversation state.

A :class:`Conversation` is the ordered message log the agent sends to the
LLM on every completion request.  It always starts with exactly one system
message, which survives :meth:`Conversation.reset` and is never returned by
:meth:`Conversation.history`.

Messages are LangChain message objects; :func:`role_of` and :func:`to_dict`
translate them into the ``system`` / ``user`` / ``assistant`` / ``tool``
vocabulary used by the HTTP API.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

_ROLES = {
    "system": "system",
    "human": "user",
    "ai": "assistant",
    "tool": "tool",
}


@dataclass(frozen=True)
class ToolCallRequest:
    """One tool invocation requested by the model."""

    id: str
    tool_name: str
    raw_arguments: str | dict[str, Any]


def tool_call_requests(message: BaseMessage) -> list[ToolCallRequest]:
    """Return the tool calls an assistant message carries, in emitted order.

    Calls whose arguments could not be parsed land in ``invalid_tool_calls``
    with the raw argument text; they still need an answer, so they are
    returned too (after the well-formed ones).
    """
    if not isinstance(message, AIMessage):
        return []
    requests = [
        ToolCallRequest(id=call["id"], tool_name=call["name"], raw_arguments=call.get("args") or {})
        for call in message.tool_calls
    ]
    requests.extend(
        ToolCallRequest(
            id=call["id"],
            tool_name=call.get("name") or "",
            raw_arguments=call.get("args") or "",
        )
        for call in message.invalid_tool_calls
        if call.get("id")
    )
    return requests


def message_text(message: BaseMessage) -> str:
    """Plain text of a message, joining text blocks of multi-part content."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def role_of(message: BaseMessage) -> str:
    return _ROLES.get(message.type, message.type)


def to_dict(message: BaseMessage) -> dict[str, Any]:
    """Render a message as ``{role, content, tool_calls?, tool_call_id?}``."""
    data: dict[str, Any] = {"role": role_of(message), "content": message_text(message)}
    requests = tool_call_requests(message)
    if requests:
        data["tool_calls"] = [
            {
                "id": r.id,
                "name": r.tool_name,
                "arguments": r.raw_arguments
                if isinstance(r.raw_arguments, str)
                else json.dumps(r.raw_arguments),
            }
            for r in requests
        ]
    if isinstance(message, ToolMessage):
        data["tool_call_id"] = message.tool_call_id
    return data


class ConversationError(ValueError):
    """Appending a message would break the tool-call answering order."""


class Conversation:
    """Ordered message log pinned to a single system message.

    Appends are checked: a ``tool`` message must answer a request made by
    the assistant message before it, and no other message may be appended
    while any of those requests is still unanswered.
    """

    def __init__(self, system_prompt: str):
        self._system = SystemMessage(content=system_prompt)
        self._messages: list[BaseMessage] = [self._system]
        self._pending: list[str] = []

    @property
    def system_prompt(self) -> str:
        return message_text(self._system)

    @system_prompt.setter
    def system_prompt(self, text: str) -> None:
        """Replace the system message in place; the rest of the log is kept."""
        self._system = SystemMessage(content=text)
        self._messages[0] = self._system

    @property
    def messages(self) -> list[BaseMessage]:
        """Full log including the system message (what the LLM sees)."""
        return list(self._messages)

    @property
    def pending_tool_calls(self) -> list[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: BaseMessage) -> None:
        if isinstance(message, SystemMessage):
            raise ConversationError("The system message is fixed at construction")
        if isinstance(message, ToolMessage):
            if message.tool_call_id not in self._pending:
                raise ConversationError(
                    f"Tool message {message.tool_call_id!r} does not answer a pending tool call"
                )
            self._pending.remove(message.tool_call_id)
        elif self._pending:
            raise ConversationError(
                f"{len(self._pending)} tool call(s) still unanswered: {', '.join(self._pending)}"
            )
        self._messages.append(message)
        self._pending.extend(r.id for r in tool_call_requests(message))

    def extend(self, messages: Iterable[BaseMessage]) -> None:
        for message in messages:
            self.append(message)

    def add_user_message(self, text: str) -> HumanMessage:
        message = HumanMessage(content=text)
        self.append(message)
        return message

    def history(self) -> list[BaseMessage]:
        """Every message except the system message, in order."""
        return self._messages[1:]

    def reset(self) -> None:
        """Truncate back to the system message."""
        self._messages = [self._system]
        self._pending = []
