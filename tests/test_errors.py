"""Tests for the engine error hierarchy."""

import pytest

from mindflow.errors import (
    ArchiveMalformedError,
    ErrorCode,
    ManifestValidationError,
    MapNotFoundError,
    PayloadError,
    PortabilityError,
    StorageError,
    StorageUnavailableError,
)


class TestErrors:
    @pytest.mark.parametrize(
        "error, code",
        [
            (ArchiveMalformedError("manifest.json missing"), ErrorCode.IMPORT_ARCHIVE_MALFORMED),
            (PayloadError("bad payload"), ErrorCode.IMPORT_PAYLOAD_INVALID),
            (StorageError("disk full"), ErrorCode.STORAGE_WRITE_FAILED),
            (StorageUnavailableError("locked"), ErrorCode.STORAGE_UNAVAILABLE),
            (MapNotFoundError("graph-alpha"), ErrorCode.MAP_NOT_FOUND),
        ],
    )
    def test_codes(self, error: PortabilityError, code: ErrorCode) -> None:
        assert isinstance(error, PortabilityError)
        assert error.code == code

    def test_unavailable_is_a_storage_error(self) -> None:
        assert issubclass(StorageUnavailableError, StorageError)

    def test_field_and_repr(self) -> None:
        error = ManifestValidationError(ErrorCode.MANIFEST_MISSING_FIELD, "missing totalMaps", field="totalMaps")

        assert str(error) == "missing totalMaps"
        assert error.field == "totalMaps"
        assert "MANIFEST_MISSING_FIELD" in repr(error)

    def test_codes_serialize_as_strings(self) -> None:
        assert ErrorCode.IMPORT_SESSION_ACTIVE == "IMPORT_SESSION_ACTIVE"
