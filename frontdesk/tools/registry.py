"""Catalogue of the tools the scheduling agent may call.

Each tool is described by a :class:`ToolDefinition`: a unique name, a
description the model reads, and a pydantic model for its arguments.  The
argument model is the single source of truth: it produces the JSON schema
sent to the LLM (camelCase field names, ``required`` list) and it validates
the model's arguments before the dispatcher touches the EHR backend.

The registry is built once at import time and never changes afterwards.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Any

from langchain_core.utils.json_schema import dereference_refs
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# RFC 5322-ish pattern; good enough for catching typos in a chat.
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


class ToolArgs(BaseModel):
    """Base for tool argument models: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_payload(self) -> dict[str, Any]:
        """Dump to the camelCase JSON shape the EHR backend expects."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Argument models ─────────────────────────────────────────────────


class GetLocationsArgs(ToolArgs):
    pass


class GetCliniciansArgs(ToolArgs):
    location_id: str | None = Field(
        default=None,
        description="Optional location ID to filter clinicians by location",
    )


class CheckAvailabilityArgs(ToolArgs):
    clinician_id: str = Field(..., min_length=1, description="The ID of the clinician")
    date: dt.date = Field(..., description="The date in YYYY-MM-DD format")


class PatientFields(ToolArgs):
    first_name: str = Field(..., min_length=1, description="Patient's first name")
    last_name: str = Field(..., min_length=1, description="Patient's last name")
    date_of_birth: dt.date = Field(..., description="Patient's date of birth in YYYY-MM-DD format")
    phone: str = Field(..., min_length=1, description="Patient's phone number")
    email: str | None = Field(default=None, description="Patient's email address (optional)")
    insurance: str | None = Field(
        default=None, description="Patient's insurance information (optional)",
    )

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if not _EMAIL_RE.match(value):
            raise ValueError(f'"{value}" does not look like a valid email address')
        return value


class CreatePatientArgs(PatientFields):
    """The backend assigns the patient ID."""


class PatientData(PatientFields):
    id: str | None = Field(
        default=None,
        description="Patient ID returned by create_patient, if the record already exists",
    )


class CreateAppointmentArgs(ToolArgs):
    patient_data: PatientData = Field(..., description="Patient information object")
    clinician_id: str = Field(..., min_length=1, description="The ID of the clinician")
    location_id: str = Field(..., min_length=1, description="The ID of the location")
    time_slot_id: str = Field(
        ..., min_length=1, description="The ID of the selected time slot",
    )
    reason: str = Field(..., min_length=1, description="Reason for the appointment")


# ── Definitions ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class ToolDefinition:
    """A callable operation offered to the LLM."""

    name: str
    description: str
    args_model: type[ToolArgs]

    @property
    def parameter_schema(self) -> dict[str, Any]:
        """JSON schema of the arguments with ``$ref``s inlined."""
        schema = dereference_refs(self.args_model.model_json_schema(by_alias=True))
        schema.pop("$defs", None)
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    @property
    def required(self) -> list[str]:
        return list(self.parameter_schema.get("required", []))

    def to_anthropic_tool(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameter_schema,
        }


_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="get_locations",
        description="Get all available medical office locations",
        args_model=GetLocationsArgs,
    ),
    ToolDefinition(
        name="get_clinicians",
        description="Get all clinicians or clinicians at a specific location",
        args_model=GetCliniciansArgs,
    ),
    ToolDefinition(
        name="check_availability",
        description=(
            "Check appointment slots for a specific clinician on a specific date. "
            "Each slot has an id, start and end time and an 'available' flag."
        ),
        args_model=CheckAvailabilityArgs,
    ),
    ToolDefinition(
        name="create_patient",
        description="Create a patient record in the system",
        args_model=CreatePatientArgs,
    ),
    ToolDefinition(
        name="create_appointment",
        description="Create an appointment in the system",
        args_model=CreateAppointmentArgs,
    ),
)


def _index(tools: tuple[ToolDefinition, ...]) -> dict[str, ToolDefinition]:
    by_name: dict[str, ToolDefinition] = {}
    for definition in tools:
        if definition.name in by_name:
            raise ValueError(f"Duplicate tool name: {definition.name}")
        by_name[definition.name] = definition
    return by_name


_BY_NAME = _index(_TOOLS)


def list_tools() -> list[ToolDefinition]:
    """Return every tool definition, in registration order."""
    return list(_TOOLS)


def get_tool(name: str) -> ToolDefinition | None:
    return _BY_NAME.get(name)
