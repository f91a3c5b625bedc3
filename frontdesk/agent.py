"""Tool-calling scheduling agent.

Architecture:
  Each patient turn runs through a small LangGraph StateGraph:

    1. **chatbot**        — Claude with the tool catalogue bound; decides
                            whether to answer directly or request tools
    2. **tools**          — executes the requested tools one by one, in the
                            order the model emitted them
    3. **final_chatbot**  — second completion that turns the tool results
                            into the reply shown to the patient

  Routing:
    chatbot → (has tool calls?) → tools → final_chatbot → END
            → (no tool calls?)  → END

  There is exactly one tool round per turn.  If the model asks for more
  tools in the final completion, those requests are logged and dropped and
  only its text is used.

  State:
    The graph itself is stateless (no checkpointer).  Each
    :class:`AppointmentAgent` owns a :class:`~frontdesk.conversation.Conversation`
    and commits the messages a turn produced only once the whole turn has
    succeeded, so a failed completion leaves nothing behind but the
    patient's own message.
"""

from __future__ import annotations

import logging
import operator
import threading
import time
from collections.abc import Iterator
from enum import Enum
from typing import Annotated

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, AnyMessage, BaseMessage, HumanMessage, ToolMessage
from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from frontdesk.config import (
    ANTHROPIC_API_KEY,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    MODEL_NAME,
    STREAM_CHUNK_DELAY_SECONDS,
)
from frontdesk.conversation import (
    Conversation,
    ConversationError,
    message_text,
    tool_call_requests,
)
from frontdesk.prompts import GREETING_MESSAGE, get_system_prompt
from frontdesk.services.metrics import metrics
from frontdesk.tools.dispatcher import ToolDispatcher
from frontdesk.tools.registry import list_tools

logger = logging.getLogger(__name__)

NO_RESPONSE_FALLBACK = (
    "I apologize, but I didn't receive a proper response. Could you please try again?"
)
TOOL_ROUND_FALLBACK = "I apologize, but I encountered an issue processing your request."


class CompletionServiceError(RuntimeError):
    """The LLM completion request failed; the turn was aborted."""


class TurnPhase(str, Enum):
    IDLE = "idle"
    AWAITING_COMPLETION = "awaiting_completion"
    TOOL_ROUND = "tool_round"
    AWAITING_FINAL_COMPLETION = "awaiting_final_completion"


class TurnState(TypedDict):
    """Messages flowing through one turn.

    ``operator.add`` concatenates node output onto the input conversation,
    so the graph never merges or rewrites messages it was given.
    """

    messages: Annotated[list[AnyMessage], operator.add]


# ── LLM ─────────────────────────────────────────────────────────────


def _build_llm():
    """Build the Claude client with every registered tool bound."""
    llm = ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=LLM_TEMPERATURE,
        max_tokens=LLM_MAX_TOKENS,
        timeout=LLM_TIMEOUT_SECONDS,
    )
    return llm.bind_tools(
        [definition.to_anthropic_tool() for definition in list_tools()],
        tool_choice="auto",
    )


def _complete(llm, messages: list[BaseMessage], operation: str) -> AIMessage:
    t0 = time.perf_counter()
    try:
        with metrics.track("anthropic", operation):
            response = llm.invoke(messages)
    except Exception as exc:
        logger.error("%s failed: %s", operation, exc)
        raise CompletionServiceError(f"Completion request failed: {exc}") from exc
    logger.debug("%s answered in %.0fms", operation, (time.perf_counter() - t0) * 1000)
    return response


# ── Nodes ───────────────────────────────────────────────────────────


def _make_chatbot_node(llm):
    def chatbot_node(state: TurnState) -> dict:
        response = _complete(llm, state["messages"], "completion")
        requests = tool_call_requests(response)
        if requests:
            logger.info(
                "Model requested %d tool call(s): %s",
                len(requests), ", ".join(r.tool_name for r in requests),
            )
        elif not message_text(response).strip():
            logger.warning("Completion returned no text and no tool calls")
            response = AIMessage(content=NO_RESPONSE_FALLBACK)
        return {"messages": [response]}

    return chatbot_node


def _make_tools_node(dispatcher: ToolDispatcher):
    def tools_node(state: TurnState) -> dict:
        results = []
        for request in tool_call_requests(state["messages"][-1]):
            payload = dispatcher.execute(request.tool_name, request.raw_arguments)
            results.append(
                ToolMessage(content=payload, tool_call_id=request.id, name=request.tool_name)
            )
        return {"messages": results}

    return tools_node


def _make_final_chatbot_node(llm):
    def final_chatbot_node(state: TurnState) -> dict:
        response = _complete(llm, state["messages"], "final_completion")
        dropped = tool_call_requests(response)
        if dropped:
            logger.warning(
                "Dropping %d tool call(s) requested after the tool round: %s",
                len(dropped), ", ".join(r.tool_name for r in dropped),
            )
        text = message_text(response)
        if not text.strip():
            text = TOOL_ROUND_FALLBACK
        return {"messages": [AIMessage(content=text)]}

    return final_chatbot_node


def should_use_tools(state: TurnState) -> str:
    if tool_call_requests(state["messages"][-1]):
        return "tools"
    return END


def create_turn_graph(llm, dispatcher: ToolDispatcher):
    """Compile the single-turn graph (no checkpointer)."""
    graph = StateGraph(TurnState)
    graph.add_node("chatbot", _make_chatbot_node(llm))
    graph.add_node("tools", _make_tools_node(dispatcher))
    graph.add_node("final_chatbot", _make_final_chatbot_node(llm))

    graph.set_entry_point("chatbot")
    graph.add_conditional_edges("chatbot", should_use_tools, {"tools": "tools", END: END})
    graph.add_edge("tools", "final_chatbot")
    graph.add_edge("final_chatbot", END)
    return graph.compile()


# ── Streaming ───────────────────────────────────────────────────────


def chunk_text(text: str, delay: float = STREAM_CHUNK_DELAY_SECONDS) -> Iterator[str]:
    """Yield *text* word by word with a fixed pause between fragments.

    This only paces an already complete reply for display; it is not token
    streaming from the model.
    """
    if not text:
        return
    for i, word in enumerate(text.split(" ")):
        if i:
            time.sleep(delay)
            yield f" {word}"
        else:
            yield word


# ── Agent ───────────────────────────────────────────────────────────


class AppointmentAgent:
    """One patient's conversation with the scheduling assistant.

    Not reentrant: every public operation that touches the conversation
    holds the agent's lock, so concurrent messages for the same session run
    one after the other.
    """

    def __init__(
        self,
        *,
        llm=None,
        dispatcher: ToolDispatcher | None = None,
        system_prompt: str | None = None,
    ):
        self._llm = llm or _build_llm()
        self._dispatcher = dispatcher or ToolDispatcher()
        self._dated_prompt = system_prompt is None
        self._conversation = Conversation(system_prompt or get_system_prompt())
        self._graph = create_turn_graph(self._llm, self._dispatcher)
        self._lock = threading.Lock()
        self._phase = TurnPhase.IDLE

    @property
    def phase(self) -> TurnPhase:
        return self._phase

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    def send_message(self, text: str) -> str:
        """Run one full turn and return the assistant's reply.

        Raises:
            CompletionServiceError: a completion request failed.  The
                patient's message stays in the conversation, nothing else
                from this turn does.
        """
        with self._lock:
            self._conversation.add_user_message(text)
            return self._run_turn()

    def retry_pending_turn(self) -> str:
        """Re-run a failed turn using the patient message still waiting for a reply.

        Raises:
            ConversationError: the last message is not an unanswered user message.
        """
        with self._lock:
            history = self._conversation.history()
            if not history or not isinstance(history[-1], HumanMessage):
                raise ConversationError("There is no unanswered message to retry")
            logger.info("Retrying pending turn")
            return self._run_turn()

    def _run_turn(self) -> str:
        if self._dated_prompt:
            # Keep "Today is" current for sessions that outlive the day.
            self._conversation.system_prompt = get_system_prompt()
        produced: list[BaseMessage] = []
        self._phase = TurnPhase.AWAITING_COMPLETION
        try:
            for update in self._graph.stream(
                {"messages": self._conversation.messages},
                stream_mode="updates",
            ):
                for node, output in update.items():
                    produced.extend(output["messages"])
                    self._phase = _phase_after(node, produced[-1])
        finally:
            self._phase = TurnPhase.IDLE

        self._conversation.extend(produced)
        reply = message_text(produced[-1])
        logger.info("Turn complete: %d message(s) added, reply %d chars", len(produced), len(reply))
        return reply

    def stream_message(self, text: str, delay: float = STREAM_CHUNK_DELAY_SECONDS) -> Iterator[str]:
        """Run a turn, then yield the reply in word-sized fragments."""
        reply = self.send_message(text)
        yield from chunk_text(reply, delay)

    def get_initial_greeting(self) -> str:
        """Run a turn with a canned opening message to get the first line."""
        return self.send_message(GREETING_MESSAGE)

    def reset_conversation(self) -> None:
        with self._lock:
            self._conversation.reset()
        logger.info("Conversation reset")

    def get_conversation_history(self) -> list[BaseMessage]:
        """All messages except the system prompt, oldest first."""
        return self._conversation.history()


def _phase_after(node: str, last: BaseMessage) -> TurnPhase:
    if node == "chatbot" and tool_call_requests(last):
        return TurnPhase.TOOL_ROUND
    if node == "tools":
        return TurnPhase.AWAITING_FINAL_COMPLETION
    return TurnPhase.IDLE
