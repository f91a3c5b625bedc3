"""Pydantic models for the mock EHR backend (camelCase on the wire)."""

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AppointmentStatus = Literal["scheduled", "confirmed", "cancelled"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    id: str
    name: str
    address: str
    phone: str
    city: str
    state: str
    zip_code: str


class Clinician(CamelModel):
    id: str
    name: str
    specialty: str
    location_id: str
    email: str


class TimeSlot(CamelModel):
    id: str
    start_time: str
    end_time: str
    available: bool
    date: dt.date


class AvailabilityResponse(CamelModel):
    clinician_id: str
    date: dt.date
    slots: list[TimeSlot]


class PatientIn(CamelModel):
    id: str | None = None
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: dt.date
    phone: str = Field(..., min_length=1)
    email: str | None = None
    insurance: str | None = None


class Patient(PatientIn):
    id: str


class PatientCreated(CamelModel):
    message: str = "Patient information saved successfully"
    patient: Patient


class AppointmentCreate(CamelModel):
    patient: PatientIn
    clinician_id: str
    location_id: str
    time_slot_id: str
    reason: str = Field(..., min_length=1)


class Appointment(CamelModel):
    id: str
    patient_id: str
    clinician_id: str
    location_id: str
    time_slot_id: str
    date: dt.date
    start_time: str
    end_time: str
    reason: str
    status: AppointmentStatus = "scheduled"
    created_at: dt.datetime


class AppointmentCreated(CamelModel):
    message: str = "Appointment created successfully!"
    appointment: Appointment


class StatusUpdate(CamelModel):
    status: AppointmentStatus


class AppointmentUpdated(CamelModel):
    message: str = "Appointment status updated successfully"
    appointment: Appointment
