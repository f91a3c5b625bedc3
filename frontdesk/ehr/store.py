"""In-memory patient and appointment storage for the mock EHR.

Everything lives in process memory behind one lock and is lost on restart.
Booking a slot marks it unavailable in every later availability lookup.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
import uuid

from frontdesk.ehr import data
from frontdesk.ehr.schemas import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    Patient,
    PatientIn,
    TimeSlot,
)

logger = logging.getLogger(__name__)


class EHRError(Exception):
    """Base class for store errors; ``status_code`` is the HTTP mapping."""

    status_code = 400


class NotFoundError(EHRError):
    status_code = 404


class UnknownSlotError(EHRError):
    status_code = 422


class SlotUnavailableError(EHRError):
    status_code = 409


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class EHRStore:
    def __init__(self) -> None:
        self._patients: dict[str, Patient] = {}
        self._appointments: dict[str, Appointment] = {}
        self._booked_slots: set[str] = set()
        self._lock = threading.Lock()

    # ── Availability ─────────────────────────────────────────────────

    def slots_for(
        self,
        clinician_id: str,
        date: dt.date,
        *,
        include_unavailable: bool = False,
    ) -> list[TimeSlot]:
        with self._lock:
            booked = set(self._booked_slots)
        slots = [
            slot.model_copy(update={"available": False}) if slot.id in booked else slot
            for slot in data.generate_time_slots(clinician_id, date)
        ]
        if include_unavailable:
            return slots
        return [slot for slot in slots if slot.available]

    # ── Patients ─────────────────────────────────────────────────────

    def create_patient(self, patient_in: PatientIn) -> Patient:
        patient = Patient(**{**patient_in.model_dump(), "id": patient_in.id or _new_id("patient")})
        with self._lock:
            self._patients[patient.id] = patient
        logger.info(
            "Patient saved: %s %s (%s)", patient.first_name, patient.last_name, patient.id,
        )
        return patient

    def get_patient(self, patient_id: str) -> Patient:
        with self._lock:
            patient = self._patients.get(patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    def list_patients(self) -> list[Patient]:
        with self._lock:
            return list(self._patients.values())

    # ── Appointments ─────────────────────────────────────────────────

    def create_appointment(self, request: AppointmentCreate) -> Appointment:
        """Book *request*'s slot, registering the patient first if needed."""
        if data.get_clinician(request.clinician_id) is None:
            raise NotFoundError(f"Clinician {request.clinician_id} not found")
        if data.get_location(request.location_id) is None:
            raise NotFoundError(f"Location {request.location_id} not found")
        if request.patient.id is not None:
            self.get_patient(request.patient.id)

        parsed = data.parse_slot_id(request.time_slot_id)
        if parsed is None or parsed[0] != request.clinician_id:
            raise UnknownSlotError(
                f"Time slot {request.time_slot_id} does not belong to clinician "
                f"{request.clinician_id}"
            )
        _, date, index = parsed
        slot = data.generate_time_slots(request.clinician_id, date)[index]

        with self._lock:
            if not slot.available or slot.id in self._booked_slots:
                raise SlotUnavailableError(f"Time slot {slot.id} is no longer available")
            self._booked_slots.add(slot.id)

        patient_id = request.patient.id
        if patient_id is None:
            patient_id = self.create_patient(request.patient).id

        appointment = Appointment(
            id=_new_id("appt"),
            patient_id=patient_id,
            clinician_id=request.clinician_id,
            location_id=request.location_id,
            time_slot_id=slot.id,
            date=date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            reason=request.reason,
            status="scheduled",
            created_at=dt.datetime.now(dt.UTC),
        )
        with self._lock:
            self._appointments[appointment.id] = appointment
        logger.info(
            "Appointment %s booked for %s %s with %s on %s at %s",
            appointment.id,
            request.patient.first_name,
            request.patient.last_name,
            appointment.clinician_id,
            appointment.date,
            appointment.start_time,
        )
        return appointment

    def get_appointment(self, appointment_id: str) -> Appointment:
        with self._lock:
            appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    def list_appointments(self) -> list[Appointment]:
        with self._lock:
            return list(self._appointments.values())

    def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """Change an appointment's status.

        Cancelling frees the slot; reviving a cancelled appointment takes it
        back, unless another booking has claimed it in the meantime.
        """
        with self._lock:
            appointment = self._appointments.get(appointment_id)
            if appointment is None:
                raise NotFoundError("Appointment not found")
            slot = appointment.time_slot_id
            was_cancelled = appointment.status == "cancelled"
            if status == "cancelled" and not was_cancelled:
                self._booked_slots.discard(slot)
            elif status != "cancelled" and was_cancelled:
                if slot in self._booked_slots:
                    raise SlotUnavailableError(f"Time slot {slot} has been booked by someone else")
                self._booked_slots.add(slot)
            appointment = appointment.model_copy(update={"status": status})
            self._appointments[appointment_id] = appointment
        logger.info("Appointment %s status updated to %s", appointment_id, status)
        return appointment


_store = EHRStore()


def get_store() -> EHRStore:
    return _store
