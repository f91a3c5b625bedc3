"""HTTP client for the EHR scheduling backend, with retry logic and timeouts.

This is the agent's only way to read locations, clinicians and availability
and to write patient and appointment records.  Every method returns the
decoded JSON body; every failure surfaces as :class:`EHRAPIError`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any

import httpx

from frontdesk.config import EHR_BASE_URL, EHR_TIMEOUT_SECONDS
from frontdesk.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 0.5


class EHRAPIError(Exception):
    """Raised when an EHR backend call fails (after retries, where retried)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class EHRClient:
    """Thin wrapper around the EHR REST API.

    Timeouts, connection errors and 5xx responses are retried with
    exponential backoff; 4xx responses fail immediately since repeating a
    rejected write would not change the outcome.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._base_url = (base_url or EHR_BASE_URL).rstrip("/")
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout or EHR_TIMEOUT_SECONDS,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._client.close()

    # ── Internal helpers ─────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute an HTTP request with exponential-backoff retries."""
        operation = f"{method} {path}"
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.track("ehr", operation):
                    response = self._client.request(
                        method, path, params=params, json=json_body,
                    )
                    if response.status_code >= 500:
                        raise EHRAPIError(
                            f"Server error {response.status_code}: {response.text}",
                            status_code=response.status_code,
                        )
                    if response.status_code >= 400:
                        raise EHRAPIError(
                            f"Client error {response.status_code}: {response.text}",
                            status_code=response.status_code,
                        )
                try:
                    return response.json()
                except ValueError as exc:
                    raise EHRAPIError(f"Invalid JSON in response to {operation}") from exc

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                logger.warning(
                    "EHR request %s attempt %d/%d failed (%s)",
                    operation, attempt, MAX_RETRIES, type(exc).__name__,
                )
            except EHRAPIError as exc:
                if exc.status_code is None or exc.status_code < 500:
                    raise
                last_error = exc
                logger.warning(
                    "EHR request %s server error on attempt %d/%d",
                    operation, attempt, MAX_RETRIES,
                )

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise EHRAPIError(
            f"EHR request {operation} failed after {MAX_RETRIES} attempts: {last_error}"
        )

    # ── Reads ────────────────────────────────────────────────────────

    def list_locations(self) -> list[dict[str, Any]]:
        logger.info("Fetching all locations")
        locations = self._request("GET", "/locations")
        logger.info("Retrieved %d locations", len(locations))
        return locations

    def list_clinicians(self) -> list[dict[str, Any]]:
        logger.info("Fetching all clinicians")
        clinicians = self._request("GET", "/clinicians")
        logger.info("Retrieved %d clinicians", len(clinicians))
        return clinicians

    def list_clinicians_by_location(self, location_id: str) -> list[dict[str, Any]]:
        logger.info("Fetching clinicians for location %s", location_id)
        clinicians = self._request("GET", f"/clinicians/location/{location_id}")
        logger.info(
            "Retrieved %d clinicians for location %s", len(clinicians), location_id,
        )
        return clinicians

    def get_availability(
        self,
        clinician_id: str,
        date: str,
        *,
        include_unavailable: bool = False,
    ) -> dict[str, Any]:
        """Return ``{"clinicianId", "date", "slots"}`` for one clinician and day.

        Args:
            clinician_id: The clinician to check.
            date: The day in ``YYYY-MM-DD`` format.
            include_unavailable: Also return slots that are already taken,
                each flagged with ``available: false``.
        """
        logger.info("Checking availability for clinician %s on %s", clinician_id, date)
        params = {"includeUnavailable": "true"} if include_unavailable else None
        data = self._request("GET", f"/availability/{clinician_id}/{date}", params=params)
        slots = data.get("slots", [])
        logger.info(
            "Found %d slots (%d open) for %s on %s",
            len(slots),
            sum(1 for s in slots if s.get("available")),
            clinician_id,
            date,
        )
        return data

    # ── Writes ───────────────────────────────────────────────────────

    def create_patient(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a patient record.  The backend assigns the ``id``."""
        logger.info(
            "Creating patient record for %s %s",
            fields.get("firstName"), fields.get("lastName"),
        )
        data = self._request("POST", "/patients", json_body=fields)
        logger.info("Patient record created: %s", data.get("patient", {}).get("id"))
        return data

    def create_appointment(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Book an appointment.

        ``fields`` carries ``patient`` (an object with the patient's details,
        optionally its ``id``), ``clinicianId``, ``locationId``,
        ``timeSlotId`` and ``reason``.
        """
        patient = fields.get("patient", {})
        logger.info(
            "Creating appointment for %s %s with %s (slot %s)",
            patient.get("firstName"), patient.get("lastName"),
            fields.get("clinicianId"), fields.get("timeSlotId"),
        )
        data = self._request("POST", "/appointments", json_body=fields)
        logger.info("Appointment booked: %s", data.get("appointment", {}).get("id"))
        return data


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: EHRClient | None = None
_client_lock = threading.Lock()


def get_ehr_client() -> EHRClient:
    """Return a module-level EHRClient singleton (double-checked locking)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = EHRClient()
    return _client
