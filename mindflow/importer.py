"""Import session orchestrator.

`ImportOrchestrator` takes archive bytes through the whole import workflow:

**Inspection** (`inspect_archive`):
    1. Unpack the archive and read ``manifest.json``
    2. Validate the manifest (structural and integrity checks, fail-fast)
    3. Check every listed payload file is present
    4. Decode each payload and migrate it to the current schema
    5. Detect name conflicts against the existing library

Inspection never writes to the library. A payload that cannot be decoded or
migrated does not fail inspection; its entry carries a `load_error` and is
recorded as failed when the session commits.

**Resolution** (`resolve_conflict`): the caller decides, per conflicted
entry, whether to add the import as a copy under a fresh ``"<name> (n)"``
name, overwrite the existing map, or cancel the session.

**Commit** (`finalize_session`): entries are written one at a time in
manifest order, walking the session's work queue. Each write is atomic for
its map; a failing entry is recorded and the next one is still attempted.
`StorageUnavailableError` stops the session, and so does anything else that
escapes the loop; either way the session is sealed as failed with a summary.
A raising progress callback is logged and ignored. Cancellation requested
during commit, through `request_cancel` or `finalize_session(..., "cancel")`
from another task, takes effect between entries; maps already written stay
written.

Example usage:
    ```python
    orchestrator = ImportOrchestrator(store=my_store)
    session = await orchestrator.inspect_archive(archive_bytes)
    for entry in session.unresolved_conflicts():
        await orchestrator.resolve_conflict(session, entry.map_id, ConflictAction.ADD)
    summary = await orchestrator.finalize_session(session, "commit")
    orchestrator.acknowledge(session)
    ```
"""

import asyncio
import inspect
import json
import uuid
from typing import Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from mfbundle import MANIFEST_FILE_NAME, ManifestEntry
from mfschema import CURRENT_SCHEMA_VERSION, MapSnapshot, MapStoreInterface, WriteMode
from mindflow.archive import ArchiveCodecInterface, ZipArchiveCodec
from mindflow.clock import SystemClock, isoformat_z
from mindflow.codec import SnapshotCodec, reidentify
from mindflow.conflicts import detect_conflict, next_available_name
from mindflow.errors import (
    ArchiveMalformedError,
    ErrorCode,
    PortabilityError,
    SessionStateError,
    StorageUnavailableError,
)
from mindflow.events import EventBus
from mindflow.logging import setup_logging
from mindflow.manifest import validate_manifest
from mindflow.migration import SchemaMigrator
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

ProgressCallback = Callable[[ImportProgress], Union[None, Awaitable[None]]]


def _new_id() -> str:
    return str(uuid.uuid4())


class _CommitTally:
    """Running counts and messages while a session commits."""

    def __init__(self) -> None:
        self.succeeded = 0
        self.failed = 0
        self.skipped = 0
        self.messages: list[ImportMessage] = []
        self.failed_ids: list[str] = []

    def info(self, map_id: str, detail: str) -> None:
        self.messages.append(ImportMessage(map_id=map_id, level=MessageLevel.INFO, detail=detail))

    def warning(self, map_id: str, detail: str) -> None:
        self.messages.append(ImportMessage(map_id=map_id, level=MessageLevel.WARNING, detail=detail))

    def error(self, map_id: str, detail: str) -> None:
        self.messages.append(ImportMessage(map_id=map_id, level=MessageLevel.ERROR, detail=detail))
        self.failed_ids.append(map_id)
        self.failed += 1


class ImportOrchestrator(BaseModel):
    """Runs import sessions against a local map library.

    Only one session may be live (``pending`` or ``applying``) at a time,
    and an archive being inspected holds that slot too. A finished session
    stays attached until `acknowledge` is called, but no longer blocks a new
    inspection. Sessions other than the attached one are rejected.

    Attributes:
        store: The destination library.
        archive_codec: Unpacks archive bytes into named files.
        snapshot_codec: Parses and decodes map payloads.
        migrator: Upgrades payloads from older schema versions.
        clock: Source of session and decision timestamps.
        events: Receives progress notifications.
        id_factory: Mints ids for maps and records that need a new identity.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    store: MapStoreInterface
    archive_codec: ArchiveCodecInterface = Field(default_factory=ZipArchiveCodec)
    snapshot_codec: SnapshotCodec = Field(default_factory=SnapshotCodec)
    migrator: SchemaMigrator = Field(default_factory=SchemaMigrator)
    clock: Any = Field(default_factory=SystemClock)
    events: EventBus = Field(default_factory=EventBus)
    id_factory: Callable[[], str] = _new_id

    _active: Optional[ImportSession] = PrivateAttr(default=None)
    _inspecting: bool = PrivateAttr(default=False)
    _apply_task: Optional[asyncio.Task] = PrivateAttr(default=None)
    _applied: asyncio.Event = PrivateAttr(default_factory=asyncio.Event)

    @property
    def active_session(self) -> Optional[ImportSession]:
        return self._active

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    async def inspect_archive(self, data: bytes) -> ImportSession:
        """Validate, migrate and conflict-check an archive without committing.

        Args:
            data: Raw archive bytes.

        Returns:
            A ``pending`` session that becomes the orchestrator's live session.

        Raises:
            SessionStateError: If another session is still pending or applying,
                or another archive is being inspected.
            ArchiveMalformedError: If the archive or its manifest cannot be
                read, or a listed payload file is missing.
            ManifestValidationError: If the manifest violates an invariant.
            StorageUnavailableError: If the library cannot be listed.
        """
        if self._inspecting:
            raise SessionStateError(ErrorCode.IMPORT_SESSION_ACTIVE, "Another archive is still being inspected")
        if self._active is not None and self._active.is_active:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_ACTIVE,
                f"Import session {self._active.session_id} is still {self._active.status.value}",
            )
        self._inspecting = True
        try:
            return await self._inspect(data)
        finally:
            self._inspecting = False

    async def _inspect(self, data: bytes) -> ImportSession:
        logger = setup_logging()
        files = self.archive_codec.unpack(data)
        manifest_bytes = files.get(MANIFEST_FILE_NAME)
        if manifest_bytes is None:
            raise ArchiveMalformedError("manifest.json missing", field=MANIFEST_FILE_NAME)
        try:
            raw_manifest = json.loads(manifest_bytes.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ArchiveMalformedError(f"manifest.json is not valid JSON: {e}", field=MANIFEST_FILE_NAME) from e

        manifest = validate_manifest(raw_manifest)
        for manifest_entry in manifest.entries:
            if manifest_entry.payload_path not in files:
                raise ArchiveMalformedError(
                    f"Payload {manifest_entry.payload_path} missing for map '{manifest_entry.name}'",
                    field=manifest_entry.payload_path,
                )

        notices = self.migrator.migrate_manifest(manifest)
        self.events.emit(
            "import.manifest_loaded",
            manifest_version=manifest.manifest_version,
            total_maps=manifest.total_maps,
        )
        logger.info(
            {
                "message": "Manifest loaded",
                "manifest_version": manifest.manifest_version,
                "producer_version": manifest.producer_version,
                "total_maps": manifest.total_maps,
                "notices": notices,
            },
            pprint=True,
        )

        entries = [self._load_entry(manifest_entry, files[manifest_entry.payload_path]) for manifest_entry in manifest.entries]

        existing_names = await self.store.list_existing_names()
        for entry in entries:
            if entry.snapshot is not None:
                entry.conflict = detect_conflict(entry.name, existing_names)

        session = ImportSession(
            session_id=self.id_factory(),
            started_at=isoformat_z(self.clock.now()),
            manifest=manifest,
            entries=entries,
            notices=notices,
            queue=[entry.map_id for entry in entries],
            migration_required=bool(notices) or any(entry.migration_attempted for entry in entries),
        )
        self._active = session

        conflicts = [entry.map_id for entry in session.conflicts()]
        self.events.emit(
            "import.session_ready",
            session_id=session.session_id,
            total=len(entries),
            conflicts=len(conflicts),
        )
        logger.info(
            {
                "message": "Import session ready",
                "session_id": session.session_id,
                "entries": len(entries),
                "conflicts": conflicts,
                "load_errors": [entry.map_id for entry in entries if entry.load_error],
                "migration_required": session.migration_required,
            },
            pprint=True,
        )
        return session

    def _load_entry(self, manifest_entry: ManifestEntry, data: bytes) -> ImportEntry:
        """Decode and migrate one payload, capturing failure on the entry."""
        logger = setup_logging()
        entry = ImportEntry(manifest_entry=manifest_entry, original_schema_version=manifest_entry.schema_version)
        try:
            raw = self.snapshot_codec.parse_payload(data, manifest_entry)
            version = raw["graph"].get("schemaVersion", manifest_entry.schema_version)
            if isinstance(version, int) and not isinstance(version, bool):
                entry.original_schema_version = version
            raw["graph"]["schemaVersion"] = entry.original_schema_version
            entry.migration_attempted = entry.original_schema_version != CURRENT_SCHEMA_VERSION

            result = self.migrator.migrate_payload(raw, entry.original_schema_version)
            entry.migration_notes = list(result.notes)
            entry.snapshot = self.snapshot_codec.decode(result.payload)
            entry.migration_succeeded = result.attempted
        except PortabilityError as e:
            entry.load_error = str(e)
            logger.warning(
                {
                    "message": "Payload could not be loaded",
                    "map_id": manifest_entry.id,
                    "code": e.code.value,
                    "error": str(e),
                },
                pprint=True,
            )
            return entry

        self.events.emit("import.entry_parsed", map_id=entry.map_id, nodes=entry.snapshot.node_count())
        if entry.migration_succeeded:
            self.events.emit(
                "import.migration_applied",
                map_id=entry.map_id,
                from_version=entry.original_schema_version,
                notes=entry.migration_notes,
            )
            logger.info(
                {"message": "Map migrated", "map_id": entry.map_id, "notes": entry.migration_notes},
                pprint=True,
            )
        return entry

    # ------------------------------------------------------------------
    # Conflict resolution
    # ------------------------------------------------------------------

    async def resolve_conflict(
        self,
        session: ImportSession,
        map_id: str,
        action: ConflictAction | str,
    ) -> Optional[ConflictResolution]:
        """Attach the caller's decision to a conflicted entry.

        Entries may be resolved in any order. For ``add`` the resolved name is
        the lowest free ``"<name> (n)"`` among existing library names and the
        names every other staged entry will be written under. ``cancel``
        cancels the whole session and returns None.

        Raises:
            SessionStateError: If the session is not the live pending one,
                or the entry is unknown, has no conflict or was already
                resolved.
        """
        logger = setup_logging()
        self._require_live(session)
        self._require_status(session, SessionStatus.PENDING)
        action = ConflictAction(action)
        if action == ConflictAction.CANCEL:
            await self.finalize_session(session, "cancel")
            return None

        entry = session.entry(map_id)
        if not entry.conflict:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"Map '{map_id}' has no conflict to resolve",
                field="map_id",
            )
        if entry.resolution is not None:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"Map '{map_id}' was already resolved as {entry.resolution.action.value}",
                field="map_id",
            )

        resolved_name = None
        if action == ConflictAction.ADD:
            try:
                existing_names = await self.store.list_existing_names()
            except StorageUnavailableError as e:
                self._abort_pending(session, e)
                raise
            taken = existing_names + [self._staged_name(other) for other in session.entries if other is not entry and other.snapshot is not None]
            resolved_name = next_available_name(entry.name, taken)

        resolution = ConflictResolution(
            map_id=map_id,
            action=action,
            resolved_name=resolved_name,
            decided_at=isoformat_z(self.clock.now()),
        )
        entry.resolution = resolution
        logger.info(
            {
                "message": "Conflict resolved",
                "map_id": map_id,
                "action": action.value,
                "resolved_name": resolved_name,
                "unresolved": len(session.unresolved_conflicts()),
            },
            pprint=True,
        )
        return resolution

    @staticmethod
    def _staged_name(entry: ImportEntry) -> str:
        if entry.resolution is not None and entry.resolution.resolved_name:
            return entry.resolution.resolved_name
        return entry.name

    # ------------------------------------------------------------------
    # Commit / cancel
    # ------------------------------------------------------------------

    async def finalize_session(
        self,
        session: ImportSession,
        action: Literal["commit", "cancel"] = "commit",
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportSummary:
        """Commit or cancel the live session and return its summary.

        ``cancel`` on a pending session finishes it at once. ``cancel`` on a
        session that is committing in another task asks the commit to stop
        before its next entry, waits for it, and returns the same summary
        the commit call returns. A progress callback runs inside the commit,
        so it must call `request_cancel` instead.

        Raises:
            SessionStateError: If the session is not the live one, is not
                pending (or applying, for ``cancel``), or conflicts remain
                unresolved on commit.
            ValueError: If `action` is neither "commit" nor "cancel".
        """
        if action not in ("commit", "cancel"):
            raise ValueError(f"Unknown finalize action: {action!r}")
        self._require_live(session)
        if action == "cancel" and session.status == SessionStatus.APPLYING:
            return await self._cancel_applying(session)
        self._require_status(session, SessionStatus.PENDING)

        if action == "cancel":
            session.cancel_requested = True
            return self._finish(session, _CommitTally())

        unresolved = session.unresolved_conflicts()
        if unresolved:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"{len(unresolved)} conflict(s) still need a decision: " + ", ".join(entry.map_id for entry in unresolved),
            )
        session.status = SessionStatus.APPLYING
        self._applied = asyncio.Event()
        self._apply_task = asyncio.current_task()
        try:
            return await self._apply(session, on_progress)
        finally:
            self._apply_task = None
            self._applied.set()

    async def _cancel_applying(self, session: ImportSession) -> ImportSummary:
        if asyncio.current_task() is self._apply_task:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                "A commit cannot wait for itself; call request_cancel from the progress callback",
            )
        session.cancel_requested = True
        await self._applied.wait()
        if session.summary is None:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"Import session {session.session_id} ended without a summary",
            )
        return session.summary

    def request_cancel(self, session: ImportSession) -> None:
        """Ask a committing session to stop before its next entry."""
        self._require_live(session)
        self._require_status(session, SessionStatus.APPLYING)
        session.cancel_requested = True

    def acknowledge(self, session: ImportSession) -> None:
        """Discard a finished session.

        Raises:
            SessionStateError: If the session is still pending or applying.
        """
        if session.is_active:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"Import session {session.session_id} is still {session.status.value}",
            )
        if self._active is session:
            self._active = None

    async def _apply(self, session: ImportSession, on_progress: Optional[ProgressCallback]) -> ImportSummary:
        logger = setup_logging()
        tally = _CommitTally()
        total = len(session.queue)

        try:
            while session.cursor < total and not session.cancel_requested:
                entry = session.entry(session.queue[session.cursor])
                snapshot = entry.snapshot
                outcome: Literal["succeeded", "failed"] = "failed"
                try:
                    if snapshot is None:
                        tally.error(entry.map_id, f"Failed to import '{entry.name}': {entry.load_error}")
                    else:
                        await self._commit_entry(entry, snapshot, tally)
                        outcome = "succeeded"
                except StorageUnavailableError as e:
                    tally.error(entry.map_id, f"Failed to import '{entry.name}': {e}")
                    session.status = SessionStatus.FAILED
                    logger.error(
                        {"message": "Storage unavailable, aborting import", "map_id": entry.map_id, "error": str(e)},
                        pprint=True,
                    )
                except Exception as e:
                    tally.error(entry.map_id, f"Failed to import '{entry.name}': {e}")
                    logger.warning(
                        {"message": "Map import failed", "map_id": entry.map_id, "error": str(e)},
                        pprint=True,
                    )

                session.cursor += 1
                self.events.emit("import.entry_committed", map_id=entry.map_id, outcome=outcome)
                await self._report(session, tally, entry.map_id, outcome, on_progress)
                if session.status == SessionStatus.FAILED:
                    break
        except BaseException as e:
            # The session must not stay applying; seal what was committed, then re-raise.
            logger.error(
                {"message": "Import interrupted", "session_id": session.session_id, "error": repr(e)},
                pprint=True,
            )
            session.status = SessionStatus.FAILED
            self._finish(session, tally)
            raise

        return self._finish(session, tally)

    async def _commit_entry(self, entry: ImportEntry, snapshot: MapSnapshot, tally: _CommitTally) -> None:
        """Write one entry to the library under its final identity."""
        logger = setup_logging()
        resolution = entry.resolution
        mode = WriteMode.INSERT
        target_id: Optional[str] = None
        name = snapshot.name
        detail = f"Imported '{name}'"

        if resolution is not None and resolution.action == ConflictAction.OVERWRITE:
            existing = await self.store.find_by_name(snapshot.name)
            if existing is not None:
                target_id, name, mode = existing.map_id, existing.name, WriteMode.OVERWRITE
                detail = f"Overwrote '{name}'"
        elif resolution is not None and resolution.resolved_name:
            target_id, name = self.id_factory(), resolution.resolved_name
            detail = f"Imported '{snapshot.name}' as '{name}'"

        if target_id is None:
            target_id = self.id_factory() if await self.store.has_map(snapshot.map_id) else snapshot.map_id

        stored = reidentify(snapshot, target_id, name, self.id_factory)
        await self.store.write_snapshot(stored, mode)

        tally.succeeded += 1
        tally.info(entry.map_id, detail)
        for note in entry.migration_notes:
            tally.info(entry.map_id, note)
        logger.info(
            {
                "message": "Map imported",
                "map_id": entry.map_id,
                "stored_as": target_id,
                "name": name,
                "mode": mode.value,
            },
            pprint=True,
        )

    async def _report(
        self,
        session: ImportSession,
        tally: _CommitTally,
        map_id: str,
        outcome: Literal["succeeded", "failed"],
        on_progress: Optional[ProgressCallback],
    ) -> None:
        if on_progress is None:
            return
        progress = ImportProgress(
            processed=session.cursor,
            total=len(session.queue),
            succeeded=tally.succeeded,
            skipped=tally.skipped,
            failed=tally.failed,
            map_id=map_id,
            outcome=outcome,
        )
        try:
            result = on_progress(progress)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger = setup_logging()
            logger.warning(
                {"message": "Progress callback failed", "map_id": map_id, "error": str(e)},
                pprint=True,
            )

    def _abort_pending(self, session: ImportSession, error: StorageUnavailableError) -> None:
        logger = setup_logging()
        logger.error(
            {"message": "Storage unavailable, aborting import", "session_id": session.session_id, "error": str(error)},
            pprint=True,
        )
        session.status = SessionStatus.FAILED
        self._finish(session, _CommitTally())

    def _finish(self, session: ImportSession, tally: _CommitTally) -> ImportSummary:
        """Account for entries left on the queue, then seal the summary."""
        logger = setup_logging()
        remaining = [session.entry(map_id) for map_id in session.remaining()]

        if session.status == SessionStatus.FAILED:
            for entry in remaining:
                tally.warning(entry.map_id, f"Import aborted before '{entry.name}' was imported")
        elif session.cancel_requested and (remaining or not session.queue):
            session.status = SessionStatus.CANCELLED
            for entry in remaining:
                tally.warning(entry.map_id, f"Import cancelled before '{entry.name}' was imported")
            if not session.queue:
                tally.warning(session.session_id, "Import cancelled; the archive contained no maps")
        else:
            session.status = SessionStatus.COMPLETE
        tally.skipped += len(remaining)
        session.cursor = len(session.queue)

        summary = ImportSummary(
            total_processed=len(session.entries),
            succeeded=tally.succeeded,
            skipped=tally.skipped,
            failed=tally.failed,
            messages=tuple(tally.messages),
        )
        validate_import_summary(
            summary,
            cancelled=session.status == SessionStatus.CANCELLED,
            failed_map_ids=tally.failed_ids,
        )
        session.summary = summary

        self.events.emit(
            "import.session_finished",
            session_id=session.session_id,
            status=session.status.value,
            succeeded=summary.succeeded,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        logger.info(
            {
                "message": "Import session finished",
                "session_id": session.session_id,
                "status": session.status.value,
                "succeeded": summary.succeeded,
                "skipped": summary.skipped,
                "failed": summary.failed,
            },
            pprint=True,
        )
        return summary

    def _require_live(self, session: ImportSession) -> None:
        if session is not self._active:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"Import session {session.session_id} is not this orchestrator's current session",
            )

    @staticmethod
    def _require_status(session: ImportSession, status: SessionStatus) -> None:
        if session.status != status:
            raise SessionStateError(
                ErrorCode.IMPORT_SESSION_STATE,
                f"Import session {session.session_id} is {session.status.value}, expected {status.value}",
            )
