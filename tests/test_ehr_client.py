"""Tests for the EHRClient service."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from frontdesk.services.ehr_client import (
    INITIAL_BACKOFF_SECONDS,
    MAX_RETRIES,
    EHRAPIError,
    EHRClient,
)

LOCATIONS = [{"id": "loc-1", "name": "Downtown Medical Center"}]


# ── Tests: reads ─────────────────────────────────────────────────────


class TestReads:
    def test_list_locations(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")

        with patch.object(client._client, "request", return_value=mock_response(LOCATIONS)) as mock_req:
            assert client.list_locations() == LOCATIONS
            assert mock_req.call_args[0] == ("GET", "/locations")

    def test_list_clinicians_by_location(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")

        with patch.object(client._client, "request", return_value=mock_response([])) as mock_req:
            assert client.list_clinicians_by_location("loc-2") == []
            assert mock_req.call_args[0] == ("GET", "/clinicians/location/loc-2")

    def test_get_availability_default_params(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")
        data = {"clinicianId": "doc-1", "date": "2025-01-10", "slots": []}

        with patch.object(client._client, "request", return_value=mock_response(data)) as mock_req:
            assert client.get_availability("doc-1", "2025-01-10") == data
            assert mock_req.call_args[0] == ("GET", "/availability/doc-1/2025-01-10")
            assert mock_req.call_args[1]["params"] is None

    def test_get_availability_including_taken_slots(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")
        data = {
            "clinicianId": "doc-1",
            "date": "2025-01-10",
            "slots": [{"id": "slot-doc-1-2025-01-10-0", "available": False}],
        }

        with patch.object(client._client, "request", return_value=mock_response(data)) as mock_req:
            result = client.get_availability("doc-1", "2025-01-10", include_unavailable=True)
            assert result["slots"][0]["available"] is False
            assert mock_req.call_args[1]["params"] == {"includeUnavailable": "true"}

    def test_base_url_trailing_slash_stripped(self):
        assert EHRClient("http://ehr.test/api/ehr/").base_url == "http://ehr.test/api/ehr"


# ── Tests: writes ────────────────────────────────────────────────────


class TestWrites:
    def test_create_patient_posts_fields(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")
        fields = {"firstName": "Ada", "lastName": "Lovelace"}
        created = {"message": "saved", "patient": {"id": "patient-1", **fields}}

        with patch.object(client._client, "request", return_value=mock_response(created, 201)) as mock_req:
            assert client.create_patient(fields) == created
            assert mock_req.call_args[0] == ("POST", "/patients")
            assert mock_req.call_args[1]["json"] == fields

    def test_create_appointment_posts_fields(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")
        fields = {"patient": {"firstName": "Ada"}, "timeSlotId": "slot-doc-1-2025-01-10-0"}
        created = {"appointment": {"id": "appt-1"}}

        with patch.object(client._client, "request", return_value=mock_response(created, 201)) as mock_req:
            assert client.create_appointment(fields) == created
            assert mock_req.call_args[1]["json"] == fields


# ── Tests: retry logic ───────────────────────────────────────────────


class TestRetryLogic:
    @patch("frontdesk.services.ehr_client.time.sleep")
    def test_retries_on_timeout(self, mock_sleep, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")

        with patch.object(
            client._client,
            "request",
            side_effect=[httpx.TimeoutException("timeout"), mock_response(LOCATIONS)],
        ):
            assert client.list_locations() == LOCATIONS
            mock_sleep.assert_called_once_with(INITIAL_BACKOFF_SECONDS)

    @patch("frontdesk.services.ehr_client.time.sleep")
    def test_retries_on_500_error(self, mock_sleep, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")

        with patch.object(
            client._client,
            "request",
            side_effect=[mock_response({"detail": "boom"}, 500), mock_response(LOCATIONS)],
        ):
            assert client.list_locations() == LOCATIONS

    @patch("frontdesk.services.ehr_client.time.sleep")
    def test_does_not_retry_on_4xx_error(self, mock_sleep, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")

        with patch.object(
            client._client, "request", return_value=mock_response({"detail": "taken"}, 409),
        ) as mock_req:
            with pytest.raises(EHRAPIError) as exc_info:
                client.create_appointment({})
            assert exc_info.value.status_code == 409
            assert "409" in str(exc_info.value)
            assert mock_req.call_count == 1
            mock_sleep.assert_not_called()

    @patch("frontdesk.services.ehr_client.time.sleep")
    def test_raises_after_max_retries_with_exponential_backoff(self, mock_sleep):
        client = EHRClient("http://ehr.test/api/ehr")

        with patch.object(
            client._client, "request", side_effect=httpx.ConnectError("refused"),
        ) as mock_req:
            with pytest.raises(EHRAPIError) as exc_info:
                client.list_clinicians()
            assert "after" in str(exc_info.value).lower()
            assert mock_req.call_count == MAX_RETRIES
            assert [c.args[0] for c in mock_sleep.call_args_list] == [
                INITIAL_BACKOFF_SECONDS * 2**i for i in range(MAX_RETRIES - 1)
            ]

    def test_invalid_json_raises(self, mock_response):
        client = EHRClient("http://ehr.test/api/ehr")
        response = mock_response(None)
        response.json.side_effect = ValueError("no json")

        with patch.object(client._client, "request", return_value=response):
            with pytest.raises(EHRAPIError, match="Invalid JSON"):
                client.list_locations()
