"""
MindFlow Portability Engine - export, import and migration of saved maps.

Packages maps from the local library into a portable zip archive and
restores such archives, upgrading older schemas and resolving name
conflicts with the caller in the loop.

    from mindflow import ExportOrchestrator, ImportOrchestrator
    from mindflow.storage import InMemoryMapStore

    store = InMemoryMapStore()
    archive = await ExportOrchestrator(store).export_selection(["graph-1"])
    session = await ImportOrchestrator(store=store).inspect_archive(archive.data)
"""

from mindflow.archive import ArchiveCodecInterface, ZipArchiveCodec
from mindflow.clock import FixedClock, SystemClock
from mindflow.codec import SnapshotCodec, reidentify
from mindflow.config import EngineConfig, configure_logging, load_engine_config
from mindflow.conflicts import detect_conflict, next_available_name
from mindflow.errors import (
    ArchiveMalformedError,
    ErrorCode,
    ImportSummaryError,
    ManifestValidationError,
    MapNotFoundError,
    MigrationError,
    PayloadError,
    PortabilityError,
    SessionStateError,
    StorageError,
    StorageUnavailableError,
)
from mindflow.events import EngineEvent, EventBus
from mindflow.export import ExportArchive, ExportOrchestrator, write_archive
from mindflow.importer import ImportOrchestrator
from mindflow.manifest import build_manifest, validate_manifest
from mindflow.migration import MigrationResult, SchemaMigrator
from mindflow.outline import export_markdown_outline
from mindflow.session import (
    ConflictAction,
    ConflictResolution,
    ImportEntry,
    ImportMessage,
    ImportProgress,
    ImportSession,
    ImportSummary,
    MessageLevel,
    SessionStatus,
)
from mindflow.summary import validate_import_summary

__all__ = [
    "ArchiveCodecInterface",
    "ZipArchiveCodec",
    "FixedClock",
    "SystemClock",
    "SnapshotCodec",
    "reidentify",
    "EngineConfig",
    "load_engine_config",
    "configure_logging",
    "detect_conflict",
    "next_available_name",
    "ArchiveMalformedError",
    "ErrorCode",
    "ImportSummaryError",
    "ManifestValidationError",
    "MapNotFoundError",
    "MigrationError",
    "PayloadError",
    "PortabilityError",
    "SessionStateError",
    "StorageError",
    "StorageUnavailableError",
    "EngineEvent",
    "EventBus",
    "ExportArchive",
    "ExportOrchestrator",
    "write_archive",
    "ImportOrchestrator",
    "build_manifest",
    "validate_manifest",
    "MigrationResult",
    "SchemaMigrator",
    "export_markdown_outline",
    "ConflictAction",
    "ConflictResolution",
    "ImportEntry",
    "ImportMessage",
    "ImportProgress",
    "ImportSession",
    "ImportSummary",
    "MessageLevel",
    "SessionStatus",
    "validate_import_summary",
]

__version__ = "0.1.0"
