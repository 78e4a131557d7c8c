"""Import session models.

An import is modelled as an explicit, persisted value rather than a blocked
call stack. `ImportOrchestrator` advances an `ImportSession` only when it is
re-invoked with a conflict decision or a commit/cancel instruction, so the
``pending`` state can last as long as the user needs.

State machine::

    pending --(all conflicts resolved, commit)--> applying
    applying --> complete | cancelled | failed
    pending --(cancel)--> cancelled
    pending --(storage unavailable)--> failed

Commit walks `ImportSession.queue` (map ids in manifest order) from
`ImportSession.cursor`, so progress, cancellation and resumption are cursor
operations.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from mfbundle import ExportManifest, ManifestEntry
from mfschema import MapSnapshot
from mindflow.errors import ErrorCode, SessionStateError


class SessionStatus(str, Enum):
    PENDING = "pending"
    APPLYING = "applying"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ConflictAction(str, Enum):
    """Caller decision for a conflicted entry.

    `CANCEL` is never attached to an entry; it cancels the whole session.
    """

    ADD = "add"
    OVERWRITE = "overwrite"
    CANCEL = "cancel"


class MessageLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ConflictResolution(BaseModel):
    """A caller decision attached to one conflicted entry. Immutable once attached."""

    model_config = ConfigDict(frozen=True)

    map_id: str
    action: Literal[ConflictAction.ADD, ConflictAction.OVERWRITE]
    resolved_name: Optional[str] = None
    decided_at: str


class ImportEntry(BaseModel):
    """One map's in-flight state during an import session."""

    manifest_entry: ManifestEntry
    snapshot: Optional[MapSnapshot] = None
    conflict: bool = False
    resolution: Optional[ConflictResolution] = None
    migration_attempted: bool = False
    migration_succeeded: bool = False
    migration_notes: list[str] = Field(default_factory=list)
    original_schema_version: int
    load_error: Optional[str] = Field(
        default=None,
        description="Why the payload could not be decoded or migrated; the entry fails at commit.",
    )

    @property
    def map_id(self) -> str:
        return self.manifest_entry.id

    @property
    def name(self) -> str:
        return self.snapshot.name if self.snapshot is not None else self.manifest_entry.name

    @property
    def needs_resolution(self) -> bool:
        return self.conflict and self.resolution is None


class ImportMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    map_id: str
    level: MessageLevel
    detail: str


class ImportSummary(BaseModel):
    """Final outcome of a session. Produced once, never modified."""

    model_config = ConfigDict(frozen=True)

    total_processed: int
    succeeded: int
    skipped: int
    failed: int
    messages: tuple[ImportMessage, ...] = ()


class ImportProgress(BaseModel):
    """Running counts reported after each entry is processed."""

    model_config = ConfigDict(frozen=True)

    processed: int
    total: int
    succeeded: int
    skipped: int
    failed: int
    map_id: str
    outcome: Literal["succeeded", "failed", "skipped"]


class ImportSession(BaseModel):
    """The state of one import, from inspection to summary."""

    session_id: str
    started_at: str
    manifest: ExportManifest
    entries: list[ImportEntry] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.PENDING
    notices: list[str] = Field(default_factory=list)
    queue: list[str] = Field(default_factory=list)
    cursor: int = 0
    cancel_requested: bool = False
    migration_required: bool = False
    summary: Optional[ImportSummary] = None

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.PENDING, SessionStatus.APPLYING)

    def entry(self, map_id: str) -> ImportEntry:
        """Return the entry for `map_id`.

        Raises:
            SessionStateError: If the session has no such entry.
        """
        for entry in self.entries:
            if entry.map_id == map_id:
                return entry
        raise SessionStateError(
            ErrorCode.IMPORT_ENTRY_UNKNOWN,
            f"No map '{map_id}' in import session {self.session_id}",
            field="map_id",
        )

    def conflicts(self) -> list[ImportEntry]:
        return [entry for entry in self.entries if entry.conflict]

    def unresolved_conflicts(self) -> list[ImportEntry]:
        return [entry for entry in self.entries if entry.needs_resolution]

    def remaining(self) -> list[str]:
        """Map ids not yet taken off the work queue."""
        return self.queue[self.cursor :]
