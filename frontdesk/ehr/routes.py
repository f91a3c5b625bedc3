"""FastAPI routes for the mock EHR backend.

Mounted under ``/api/ehr``; this is the API the agent's
:class:`~frontdesk.services.ehr_client.EHRClient` talks to.
"""

from __future__ import annotations

import datetime as dt
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from frontdesk.ehr import data
from frontdesk.ehr.schemas import (
    Appointment,
    AppointmentCreate,
    AppointmentCreated,
    AppointmentUpdated,
    AvailabilityResponse,
    Clinician,
    Location,
    Patient,
    PatientCreated,
    PatientIn,
    StatusUpdate,
)
from frontdesk.ehr.store import EHRError, EHRStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter()


def _http_error(exc: EHRError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


# ── Locations ────────────────────────────────────────────────────────


@router.get("/locations", response_model=list[Location])
async def list_locations():
    return data.LOCATIONS


@router.get("/locations/{location_id}", response_model=Location)
async def get_location(location_id: str):
    location = data.get_location(location_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


# ── Clinicians ───────────────────────────────────────────────────────


@router.get("/clinicians", response_model=list[Clinician])
async def list_clinicians():
    return data.CLINICIANS


@router.get("/clinicians/location/{location_id}", response_model=list[Clinician])
async def list_clinicians_by_location(location_id: str):
    return [c for c in data.CLINICIANS if c.location_id == location_id]


@router.get("/clinicians/{clinician_id}", response_model=Clinician)
async def get_clinician(clinician_id: str):
    clinician = data.get_clinician(clinician_id)
    if clinician is None:
        raise HTTPException(status_code=404, detail="Clinician not found")
    return clinician


# ── Availability ─────────────────────────────────────────────────────


@router.get("/availability/{clinician_id}/{date}", response_model=AvailabilityResponse)
async def get_availability(
    clinician_id: str,
    date: dt.date,
    include_unavailable: bool = Query(False, alias="includeUnavailable"),
    store: EHRStore = Depends(get_store),
):
    slots = store.slots_for(clinician_id, date, include_unavailable=include_unavailable)
    logger.info(
        "Availability for %s on %s: %d %s slots",
        clinician_id, date, len(slots), "total" if include_unavailable else "open",
    )
    return AvailabilityResponse(clinician_id=clinician_id, date=date, slots=slots)


# ── Patients ─────────────────────────────────────────────────────────


@router.post("/patients", response_model=PatientCreated, status_code=201)
async def create_patient(patient: PatientIn, store: EHRStore = Depends(get_store)):
    return PatientCreated(patient=store.create_patient(patient))


@router.get("/patients", response_model=list[Patient])
async def list_patients(store: EHRStore = Depends(get_store)):
    return store.list_patients()


@router.get("/patients/{patient_id}", response_model=Patient)
async def get_patient(patient_id: str, store: EHRStore = Depends(get_store)):
    try:
        return store.get_patient(patient_id)
    except EHRError as exc:
        raise _http_error(exc) from exc


# ── Appointments ─────────────────────────────────────────────────────


@router.post("/appointments", response_model=AppointmentCreated, status_code=201)
async def create_appointment(request: AppointmentCreate, store: EHRStore = Depends(get_store)):
    try:
        appointment = store.create_appointment(request)
    except EHRError as exc:
        logger.warning("Appointment rejected: %s", exc)
        raise _http_error(exc) from exc
    return AppointmentCreated(appointment=appointment)


@router.get("/appointments", response_model=list[Appointment])
async def list_appointments(store: EHRStore = Depends(get_store)):
    return store.list_appointments()


@router.get("/appointments/{appointment_id}", response_model=Appointment)
async def get_appointment(appointment_id: str, store: EHRStore = Depends(get_store)):
    try:
        return store.get_appointment(appointment_id)
    except EHRError as exc:
        raise _http_error(exc) from exc


@router.put("/appointments/{appointment_id}/status", response_model=AppointmentUpdated)
async def update_appointment_status(
    appointment_id: str,
    update: StatusUpdate,
    store: EHRStore = Depends(get_store),
):
    try:
        appointment = store.update_status(appointment_id, update.status)
    except EHRError as exc:
        raise _http_error(exc) from exc
    return AppointmentUpdated(appointment=appointment)
