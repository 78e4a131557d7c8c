"""Error types raised by the portability engine.

Every error carries a machine-readable `code` so the UI can map it to copy
without parsing messages, plus an optional `field` naming the offending
manifest or payload key.

Taxonomy:
    - Structural (`IMPORT_ARCHIVE_MALFORMED`, `MANIFEST_MISSING_FIELD`,
      `MANIFEST_DUPLICATE_ID`) and integrity (`MANIFEST_INTEGRITY_MISMATCH`,
      `IMPORT_MANIFEST_UNSUPPORTED`) errors abort inspection before any data
      changes.
    - Per-entry errors (`IMPORT_PAYLOAD_INVALID`, `IMPORT_MIGRATION_FAILED`,
      `STORAGE_WRITE_FAILED`) are caught by the import orchestrator and
      recorded in the summary; sibling entries still commit.
    - `STORAGE_UNAVAILABLE` is unrecoverable and fails the session.
    - Summary-contract codes indicate an orchestrator bug, not user error.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    IMPORT_ARCHIVE_MALFORMED = "IMPORT_ARCHIVE_MALFORMED"
    MANIFEST_MISSING_FIELD = "MANIFEST_MISSING_FIELD"
    MANIFEST_DUPLICATE_ID = "MANIFEST_DUPLICATE_ID"
    MANIFEST_INTEGRITY_MISMATCH = "MANIFEST_INTEGRITY_MISMATCH"
    IMPORT_MANIFEST_UNSUPPORTED = "IMPORT_MANIFEST_UNSUPPORTED"

    IMPORT_PAYLOAD_INVALID = "IMPORT_PAYLOAD_INVALID"
    IMPORT_MIGRATION_FAILED = "IMPORT_MIGRATION_FAILED"

    IMPORT_SUMMARY_TOTAL_MISMATCH = "IMPORT_SUMMARY_TOTAL_MISMATCH"
    IMPORT_SUMMARY_CANCEL_WARNING_MISSING = "IMPORT_SUMMARY_CANCEL_WARNING_MISSING"
    IMPORT_SUMMARY_FAILED_MESSAGE_MISSING = "IMPORT_SUMMARY_FAILED_MESSAGE_MISSING"

    IMPORT_SESSION_ACTIVE = "IMPORT_SESSION_ACTIVE"
    IMPORT_SESSION_STATE = "IMPORT_SESSION_STATE"
    IMPORT_ENTRY_UNKNOWN = "IMPORT_ENTRY_UNKNOWN"

    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    MAP_NOT_FOUND = "MAP_NOT_FOUND"


class PortabilityError(Exception):
    """Base class for all engine errors."""

    def __init__(self, code: ErrorCode, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.field = field

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={str(self)!r}, field={self.field!r})"


class ArchiveMalformedError(PortabilityError):
    """The archive cannot be read, or lacks a required file."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(ErrorCode.IMPORT_ARCHIVE_MALFORMED, message, field)


class ManifestValidationError(PortabilityError):
    """The manifest violates a structural or integrity invariant."""


class PayloadError(PortabilityError):
    """A map payload cannot be decoded."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(ErrorCode.IMPORT_PAYLOAD_INVALID, message, field)


class MigrationError(PortabilityError):
    """An upgrade step failed or no upgrade path exists."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(ErrorCode.IMPORT_MIGRATION_FAILED, message, field)


class ImportSummaryError(PortabilityError):
    """A produced summary violates the summary contract."""


class SessionStateError(PortabilityError):
    """An operation is not allowed in the session's current state."""


class StorageError(PortabilityError):
    """A single store operation failed."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.STORAGE_WRITE_FAILED) -> None:
        super().__init__(code, message)


class StorageUnavailableError(StorageError):
    """The store as a whole cannot be used; remaining work must stop."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=ErrorCode.STORAGE_UNAVAILABLE)


class MapNotFoundError(StorageError):
    """A requested map does not exist in the library."""

    def __init__(self, map_id: str) -> None:
        super().__init__(f"Map '{map_id}' not found", code=ErrorCode.MAP_NOT_FOUND)
        self.map_id = map_id
