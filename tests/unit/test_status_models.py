"""Unit tests for StatusRecord, PhaseEnum and UpdateRequest."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from fwupdater.errors import INVALID_URI_MESSAGE, InvalidPackageUriError
from fwupdater.models.request import UpdateRequest, is_secure_uri
from fwupdater.models.status import ErrorInfo, PhaseEnum, StatusRecord


@pytest.mark.unit
class TestStatusRecord:
    """Test StatusRecord construction and wire form."""

    def test_waiting_carries_package_uri(self):
        record = StatusRecord.waiting("https://pkg/fw.bin")

        assert record.phase == PhaseEnum.WAITING
        assert record.package_uri == "https://pkg/fw.bin"
        assert record.error is None
        assert record.timestamp.tzinfo is not None

    def test_failed_requires_error(self):
        with pytest.raises(ValidationError):
            StatusRecord(phase=PhaseEnum.DOWNLOAD_FAILED)

    def test_error_forbidden_on_success_phases(self):
        with pytest.raises(ValidationError):
            StatusRecord(phase=PhaseEnum.APPLY_COMPLETE, error=ErrorInfo(code=500, message="x"))

    def test_package_uri_only_in_waiting(self):
        with pytest.raises(ValidationError):
            StatusRecord(phase=PhaseEnum.DOWNLOADING, package_uri="https://pkg/fw.bin")

    def test_to_twin_value_uses_camel_case_and_drops_none(self):
        record = StatusRecord(
            phase=PhaseEnum.WAITING,
            package_uri="https://pkg/fw.bin",
            timestamp=datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc),
        )

        value = record.to_twin_value()

        assert value["phase"] == "waiting"
        assert value["packageUri"] == "https://pkg/fw.bin"
        assert "error" not in value
        assert value["timestamp"].startswith("2026-10-19T12:00:00")

    def test_failed_wire_form_contains_error(self):
        record = StatusRecord.failed(PhaseEnum.DOWNLOAD_FAILED, 504, "timeout")

        value = record.to_twin_value()

        assert value["phase"] == "downloadFailed"
        assert value["error"] == {"code": 504, "message": "timeout"}

    def test_round_trip_preserves_all_fields(self):
        record = StatusRecord.failed(PhaseEnum.APPLY_FAILED, 500, "flash write failed")

        assert StatusRecord.from_twin_value(record.to_twin_value()) == record

    def test_from_twin_value_ignores_unknown_keys(self):
        value = {
            "phase": "applyComplete",
            "timestamp": "2026-10-19T12:00:00Z",
            "lastFirmwareUpdate": "2026-10-19T12:00:00Z",
        }

        record = StatusRecord.from_twin_value(value)

        assert record.phase == PhaseEnum.APPLY_COMPLETE
        assert record.timestamp == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def test_naive_timestamp_treated_as_utc(self):
        record = StatusRecord(phase=PhaseEnum.APPLYING, timestamp="2026-10-19T12:00:00")

        assert record.timestamp.tzinfo == timezone.utc

    def test_parses_fractional_zulu_timestamp(self):
        record = StatusRecord.from_twin_value(
            {"phase": "applying", "timestamp": "2026-10-19T12:00:00.123Z"}
        )

        assert record.timestamp == datetime(2026, 10, 19, 12, 0, 0, 123000, tzinfo=timezone.utc)
        assert record.timestamp.utcoffset().total_seconds() == 0

    def test_records_are_immutable(self):
        record = StatusRecord.entered(PhaseEnum.DOWNLOADING)

        with pytest.raises(ValidationError):
            record.phase = PhaseEnum.APPLYING


@pytest.mark.unit
class TestPhaseEnum:
    """Test phase classification helpers."""

    @pytest.mark.parametrize("phase", [PhaseEnum.DOWNLOAD_FAILED, PhaseEnum.APPLY_FAILED])
    def test_failure_phases(self, phase):
        assert phase.is_failure
        assert phase.is_terminal

    def test_apply_complete_is_terminal_success(self):
        assert PhaseEnum.APPLY_COMPLETE.is_terminal
        assert not PhaseEnum.APPLY_COMPLETE.is_failure

    @pytest.mark.parametrize(
        "phase",
        [PhaseEnum.WAITING, PhaseEnum.DOWNLOADING, PhaseEnum.DOWNLOAD_COMPLETE, PhaseEnum.APPLYING],
    )
    def test_in_flight_phases(self, phase):
        assert not phase.is_terminal


@pytest.mark.unit
class TestUpdateRequest:
    """Test the secure transport check."""

    @pytest.mark.parametrize(
        "uri", ["https://pkg/fw.bin", "HTTPS://updates.example.com/fw-2.1.0.bin"]
    )
    def test_secure_uris_accepted(self, uri):
        assert is_secure_uri(uri)
        assert UpdateRequest.from_uri(uri).package_uri == uri

    @pytest.mark.parametrize(
        "uri", ["http://pkg/fw.bin", "ftp://pkg/fw.bin", "https://", "pkg/fw.bin", "", None]
    )
    def test_insecure_uris_rejected(self, uri):
        assert not is_secure_uri(uri)
        with pytest.raises(InvalidPackageUriError) as exc_info:
            UpdateRequest.from_uri(uri)

        assert str(exc_info.value) == INVALID_URI_MESSAGE
        assert exc_info.value.code == 400

    def test_request_is_immutable(self):
        request = UpdateRequest.from_uri("https://pkg/fw.bin")

        with pytest.raises(ValidationError):
            request.package_uri = "https://other/fw.bin"
