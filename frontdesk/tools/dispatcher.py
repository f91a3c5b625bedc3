"""Executes model-requested tool calls against the EHR backend.

:meth:`ToolDispatcher.execute` never raises.  Whatever goes wrong (unknown
tool, malformed or invalid arguments, a failed backend call) is turned into
``{"error": "Tool execution failed: ..."}`` so the orchestrator can always
answer the model's request with a ``tool`` message and let the model explain
the problem to the patient.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from frontdesk.services.ehr_client import EHRAPIError, EHRClient, get_ehr_client
from frontdesk.services.metrics import metrics
from frontdesk.tools.registry import (
    CheckAvailabilityArgs,
    CreateAppointmentArgs,
    CreatePatientArgs,
    GetCliniciansArgs,
    ToolArgs,
    get_tool,
)

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """A single tool invocation could not be completed."""


def error_payload(message: str) -> str:
    return json.dumps({"error": f"Tool execution failed: {message}"})


def _parse_arguments(tool_name: str, raw_arguments: str | Mapping[str, Any] | None) -> dict:
    """Accept the model's arguments as JSON text or an already-decoded mapping."""
    if raw_arguments is None:
        return {}
    if isinstance(raw_arguments, Mapping):
        return dict(raw_arguments)
    if not raw_arguments.strip():
        return {}
    try:
        parsed = json.loads(raw_arguments)
    except json.JSONDecodeError as exc:
        raise ToolExecutionError(f"Malformed arguments for {tool_name}: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise ToolExecutionError(
            f"Arguments for {tool_name} must be a JSON object, got {type(parsed).__name__}"
        )
    return parsed


def _describe_validation_error(tool_name: str, exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "arguments"
        problems.append(f"{field}: {err['msg']}")
    return f"Invalid arguments for {tool_name}: " + "; ".join(problems)


class ToolDispatcher:
    """Maps tool names to EHR gateway calls and serializes the results."""

    def __init__(self, gateway: EHRClient | None = None):
        self._gateway = gateway or get_ehr_client()
        self._handlers: dict[str, Callable[[Any], Any]] = {
            "get_locations": self._get_locations,
            "get_clinicians": self._get_clinicians,
            "check_availability": self._check_availability,
            "create_patient": self._create_patient,
            "create_appointment": self._create_appointment,
        }

    def execute(self, tool_name: str, raw_arguments: str | Mapping[str, Any] | None = None) -> str:
        """Run one tool call and return its JSON-encoded result or error."""
        logger.info("Executing tool %s", tool_name)
        try:
            with metrics.track("tools", tool_name):
                result = self._run(tool_name, raw_arguments)
            payload = json.dumps(result, default=str)
        except ToolExecutionError as exc:
            logger.warning("Tool %s failed: %s", tool_name, exc)
            return error_payload(str(exc))
        except Exception as exc:
            logger.exception("Unexpected error in tool %s", tool_name)
            return error_payload(f"{type(exc).__name__}: {exc}")

        logger.info("Tool %s succeeded (%d bytes)", tool_name, len(payload))
        return payload

    def _run(self, tool_name: str, raw_arguments: str | Mapping[str, Any] | None) -> Any:
        definition = get_tool(tool_name)
        handler = self._handlers.get(tool_name)
        if definition is None or handler is None:
            raise ToolExecutionError(f"Unknown tool: {tool_name}")

        arguments = _parse_arguments(tool_name, raw_arguments)
        try:
            args = definition.args_model.model_validate(arguments)
        except ValidationError as exc:
            raise ToolExecutionError(_describe_validation_error(tool_name, exc)) from exc

        try:
            return handler(args)
        except EHRAPIError as exc:
            raise ToolExecutionError(str(exc)) from exc

    # ── Handlers ─────────────────────────────────────────────────────

    def _get_locations(self, args: ToolArgs) -> Any:
        return self._gateway.list_locations()

    def _get_clinicians(self, args: GetCliniciansArgs) -> Any:
        if args.location_id:
            return self._gateway.list_clinicians_by_location(args.location_id)
        return self._gateway.list_clinicians()

    def _check_availability(self, args: CheckAvailabilityArgs) -> Any:
        return self._gateway.get_availability(
            args.clinician_id,
            args.date.isoformat(),
            include_unavailable=True,
        )

    def _create_patient(self, args: CreatePatientArgs) -> Any:
        return self._gateway.create_patient(args.to_payload())

    def _create_appointment(self, args: CreateAppointmentArgs) -> Any:
        return self._gateway.create_appointment(
            {
                "patient": args.patient_data.to_payload(),
                "clinicianId": args.clinician_id,
                "locationId": args.location_id,
                "timeSlotId": args.time_slot_id,
                "reason": args.reason,
            }
        )
