"""FrontDesk — an AI front desk receptionist that books medical appointments.

Architecture Overview
=====================

Each patient conversation is served by an :class:`~frontdesk.agent.AppointmentAgent`
that runs every turn through a three-node **LangGraph** graph:

1. **chatbot** — Claude (via ``langchain-anthropic``) sees the conversation
   and the tool catalogue and either answers or asks for tool calls.
2. **tools** — the requested tools run one by one against the EHR backend;
   each result (or error) becomes a ``tool`` message.
3. **final_chatbot** — a second completion turns the tool results into the
   reply the patient sees.

Routing: chatbot → (tool calls?) → tools → final_chatbot → END

Key Design Decisions
--------------------
- **One tool round per turn**: tool calls requested by the final completion
  are dropped, so a turn costs at most two completions.
- **Validated tool arguments**: each tool has a pydantic argument model that
  also generates the JSON schema the model sees.
- **Tool errors never abort a turn**: they are returned to the model as an
  error payload so it can explain or retry in conversation.
- **All-or-nothing turns**: a failed completion leaves only the patient's
  message in the conversation.
- **Sessions**: one agent per session id, created on first use and kept for
  the life of the process.

Package Structure
-----------------
- ``frontdesk/agent.py`` — turn graph and ``AppointmentAgent``
- ``frontdesk/conversation.py`` — per-session message log
- ``frontdesk/sessions.py`` — session id → agent registry
- ``frontdesk/tools/`` — tool registry and dispatcher
- ``frontdesk/services/`` — EHR client, metrics, log broadcaster
- ``frontdesk/ehr/`` — mock EHR backend (locations, clinicians, slots, bookings)
- ``frontdesk/api/`` — FastAPI chat routes and schemas
- ``frontdesk/server.py`` — FastAPI application
- ``frontdesk/main.py`` — CLI chat interface
- ``frontdesk/config.py`` — configuration from environment variables
- ``frontdesk/prompts.py`` — system prompt
"""
