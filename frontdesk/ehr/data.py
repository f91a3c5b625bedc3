"""Static reference data and time-slot generation for the mock EHR."""

from __future__ import annotations

import datetime as dt
import random
import re

from frontdesk.ehr.schemas import Clinician, Location, TimeSlot

LOCATIONS: list[Location] = [
    Location(
        id="loc-1",
        name="Downtown Medical Center",
        address="123 Main Street",
        phone="(555) 123-4567",
        city="New York",
        state="NY",
        zip_code="10001",
    ),
    Location(
        id="loc-2",
        name="Westside Health Clinic",
        address="456 Oak Avenue",
        phone="(555) 234-5678",
        city="New York",
        state="NY",
        zip_code="10025",
    ),
    Location(
        id="loc-3",
        name="Brooklyn Family Practice",
        address="789 Brooklyn Bridge Blvd",
        phone="(555) 345-6789",
        city="Brooklyn",
        state="NY",
        zip_code="11201",
    ),
]

CLINICIANS: list[Clinician] = [
    Clinician(
        id="doc-1",
        name="Dr. Sarah Johnson",
        specialty="Family Medicine",
        location_id="loc-1",
        email="sarah.johnson@example.com",
    ),
    Clinician(
        id="doc-2",
        name="Dr. Michael Chen",
        specialty="Internal Medicine",
        location_id="loc-1",
        email="michael.chen@example.com",
    ),
    Clinician(
        id="doc-3",
        name="Dr. Emily Rodriguez",
        specialty="Pediatrics",
        location_id="loc-2",
        email="emily.rodriguez@example.com",
    ),
    Clinician(
        id="doc-4",
        name="Dr. James Wilson",
        specialty="Cardiology",
        location_id="loc-2",
        email="james.wilson@example.com",
    ),
    Clinician(
        id="doc-5",
        name="Dr. Lisa Thompson",
        specialty="Family Medicine",
        location_id="loc-3",
        email="lisa.thompson@example.com",
    ),
]

SLOT_TIMES = (
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
)
SLOT_MINUTES = 30
AVAILABILITY_RATE = 0.7

_SLOT_ID_RE = re.compile(r"^slot-(?P<clinician>.+)-(?P<date>\d{4}-\d{2}-\d{2})-(?P<index>\d+)$")


def get_location(location_id: str) -> Location | None:
    return next((loc for loc in LOCATIONS if loc.id == location_id), None)


def get_clinician(clinician_id: str) -> Clinician | None:
    return next((c for c in CLINICIANS if c.id == clinician_id), None)


def slot_id(clinician_id: str, date: dt.date, index: int) -> str:
    return f"slot-{clinician_id}-{date.isoformat()}-{index}"


def parse_slot_id(value: str) -> tuple[str, dt.date, int] | None:
    """Split a slot id into ``(clinician_id, date, index)``, or ``None``."""
    match = _SLOT_ID_RE.match(value)
    if not match:
        return None
    try:
        date = dt.date.fromisoformat(match["date"])
    except ValueError:
        return None
    index = int(match["index"])
    if index >= len(SLOT_TIMES):
        return None
    return match["clinician"], date, index


def generate_time_slots(clinician_id: str, date: dt.date) -> list[TimeSlot]:
    """Return the day's twelve 30-minute slots for a clinician.

    About 70% are open.  The pattern is seeded by clinician and date so the
    same day always looks the same.
    """
    rng = random.Random(f"{clinician_id}:{date.isoformat()}")
    slots = []
    for index, start in enumerate(SLOT_TIMES):
        start_dt = dt.datetime.combine(date, dt.time.fromisoformat(start))
        end = (start_dt + dt.timedelta(minutes=SLOT_MINUTES)).strftime("%H:%M")
        slots.append(
            TimeSlot(
                id=slot_id(clinician_id, date, index),
                start_time=start,
                end_time=end,
                available=rng.random() < AVAILABILITY_RATE,
                date=date,
            )
        )
    return slots
