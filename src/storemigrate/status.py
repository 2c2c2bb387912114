"""
Persisted phase status and the read-only status query surface.

Status records live in the target store's ``migration_status`` collection,
one document per phase, keyed by ``name``. Every write goes through the
MigrationState transition table; an illegal edge raises
InvalidStateTransitionError and leaves the record untouched.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from storemigrate.exceptions import InvalidStateTransitionError
from storemigrate.models import MigrationState, MigrationStatus, PhaseStats
from storemigrate.observability import ATTR_STATUS_NAME, Tracer, create_tracer
from storemigrate.targets.base import DocumentStore

logger = logging.getLogger(__name__)

STATUS_COLLECTION = "migration_status"


class StatusStore:
    """
    Reads and writes phase status records.

    Example:
        >>> status = StatusStore(store)
        >>> await status.mark_running("phase4_user_management")
        >>> await status.mark_completed("phase4_user_management", stats, duration_seconds=12.5)
        >>> (await status.get("phase4_user_management")).status
        <MigrationState.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str = STATUS_COLLECTION,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._store = store
        self._collection = collection

    async def get(self, name: str) -> MigrationStatus | None:
        doc = await self._store.find_one(self._collection, {"name": name})
        return MigrationStatus.from_document(doc) if doc else None

    async def list_all(self) -> list[MigrationStatus]:
        docs = await self._store.find(self._collection, sort="name")
        return [MigrationStatus.from_document(doc) for doc in docs]

    async def state_of(self, name: str) -> MigrationState:
        """Current state of a phase; PENDING when no record exists."""
        record = await self.get(name)
        return record.status if record else MigrationState.PENDING

    async def _transition(self, name: str, target: MigrationState) -> MigrationStatus:
        record = await self.get(name) or MigrationStatus(name=name)
        if not record.status.can_transition_to(target):
            raise InvalidStateTransitionError(name, record.status, target)
        now = datetime.now(UTC)
        if record.created_at is None:
            record.created_at = now
        record.updated_at = now
        record.status = target
        return record

    async def _save(self, record: MigrationStatus) -> None:
        with self._tracer.span(
            "storemigrate.status.save",
            {ATTR_STATUS_NAME: record.name, "storemigrate.status.state": record.status.value},
        ):
            await self._store.upsert_one(
                self._collection, {"name": record.name}, record.to_document()
            )

    async def mark_running(self, name: str) -> MigrationStatus:
        """
        Move a phase to RUNNING and clear the previous run's counters.

        ``first_run`` is set only if it has never been set.

        Raises:
            InvalidStateTransitionError: If the phase is not PENDING
        """
        record = await self._transition(name, MigrationState.RUNNING)
        now = record.updated_at
        if record.first_run is None:
            record.first_run = now
        record.last_run = now
        record.duration_seconds = None
        record.processed = record.succeeded = record.failed = 0
        record.error = record.stack = None
        record.details = {}
        await self._save(record)
        logger.info("Phase %s is running", name)
        return record

    async def mark_completed(
        self,
        name: str,
        stats: PhaseStats,
        duration_seconds: float,
        details: Mapping[str, Any] | None = None,
    ) -> MigrationStatus:
        """
        Move a phase from RUNNING to COMPLETED.

        Raises:
            InvalidStateTransitionError: If the phase is not RUNNING
        """
        record = await self._transition(name, MigrationState.COMPLETED)
        self._apply_run(record, stats, duration_seconds, details)
        await self._save(record)
        logger.info(
            "Phase %s completed: %d processed, %d succeeded, %d failed in %.2fs",
            name,
            stats.processed,
            stats.succeeded,
            stats.failed,
            duration_seconds,
        )
        return record

    async def mark_failed(
        self,
        name: str,
        error: BaseException | str,
        stats: PhaseStats,
        duration_seconds: float,
        details: Mapping[str, Any] | None = None,
    ) -> MigrationStatus:
        """
        Move a phase from RUNNING to FAILED, recording the error and stack.

        Raises:
            InvalidStateTransitionError: If the phase is not RUNNING
        """
        record = await self._transition(name, MigrationState.FAILED)
        self._apply_run(record, stats, duration_seconds, details)
        if isinstance(error, BaseException):
            record.error = str(error)
            record.stack = "".join(traceback.format_exception(error))
        else:
            record.error = error
        await self._save(record)
        logger.error("Phase %s failed: %s", name, record.error)
        return record

    @staticmethod
    def _apply_run(
        record: MigrationStatus,
        stats: PhaseStats,
        duration_seconds: float,
        details: Mapping[str, Any] | None,
    ) -> None:
        record.processed = stats.processed
        record.succeeded = stats.succeeded
        record.failed = stats.failed
        record.duration_seconds = round(duration_seconds, 3)
        if details is not None:
            record.details = dict(details)

    async def reset(self, name: str) -> bool:
        """
        Delete a phase's record, returning it to PENDING.

        Returns:
            True if a record was deleted
        """
        deleted = await self._store.delete_one(self._collection, {"name": name})
        if deleted:
            logger.warning("Status record %s reset", name)
        return bool(deleted)


@dataclass
class PhaseOverview:
    """One row of the status overview."""

    name: str
    status: MigrationState
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    success_rate: float = 0.0
    duration_seconds: float | None = None
    first_run: datetime | None = None
    last_run: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "success_rate": self.success_rate,
            "duration_seconds": self.duration_seconds,
            "first_run": self.first_run.isoformat() if self.first_run else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "error": self.error,
        }


@dataclass
class StatusOverview:
    """
    Summary of all phases.

    Attributes:
        phases: One entry per known phase, in registration order
        collection_counts: Document count per target collection
    """

    phases: list[PhaseOverview] = field(default_factory=list)
    collection_counts: dict[str, int] = field(default_factory=dict)

    def _count(self, state: MigrationState) -> int:
        return sum(1 for phase in self.phases if phase.status == state)

    @property
    def total(self) -> int:
        return len(self.phases)

    @property
    def completed(self) -> int:
        return self._count(MigrationState.COMPLETED)

    @property
    def failed(self) -> int:
        return self._count(MigrationState.FAILED)

    @property
    def running(self) -> int:
        return self._count(MigrationState.RUNNING)

    @property
    def pending(self) -> int:
        return self._count(MigrationState.PENDING)

    @property
    def progress_percent(self) -> int:
        """Completed phases as a rounded percentage of all phases."""
        if not self.phases:
            return 0
        return round(self.completed / self.total * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": {
                "total": self.total,
                "completed": self.completed,
                "failed": self.failed,
                "running": self.running,
                "pending": self.pending,
                "progress_percentage": self.progress_percent,
            },
            "phases": [phase.to_dict() for phase in self.phases],
            "collections": dict(self.collection_counts),
        }


class StatusQuery:
    """
    Read-only view over the status records and target collections.

    Example:
        >>> overview = await StatusQuery(store).overview(["phase1_core_independent"])
        >>> overview.progress_percent
        100
    """

    def __init__(self, store: DocumentStore, status_store: StatusStore | None = None) -> None:
        self._store = store
        self._status = status_store or StatusStore(store, enable_tracing=False)

    async def overview(
        self,
        phase_names: Sequence[str],
        collections: Iterable[str] = (),
    ) -> StatusOverview:
        """
        Build the overview of the given phases.

        Phases without a record are reported as PENDING. Records for names
        outside ``phase_names`` are appended after them.

        Args:
            phase_names: Status names of the registered phases
            collections: Target collections to count

        Returns:
            StatusOverview
        """
        records = {record.name: record for record in await self._status.list_all()}
        names = list(phase_names) + sorted(set(records) - set(phase_names))

        overview = StatusOverview()
        for name in names:
            record = records.get(name)
            if record is None:
                overview.phases.append(PhaseOverview(name=name, status=MigrationState.PENDING))
                continue
            overview.phases.append(
                PhaseOverview(
                    name=name,
                    status=record.status,
                    processed=record.processed,
                    succeeded=record.succeeded,
                    failed=record.failed,
                    success_rate=record.success_rate,
                    duration_seconds=record.duration_seconds,
                    first_run=record.first_run,
                    last_run=record.last_run,
                    error=record.error,
                )
            )
        for collection in collections:
            overview.collection_counts[collection] = await self._store.count_documents(collection)
        return overview

    async def details(self, name: str) -> MigrationStatus | None:
        return await self._status.get(name)


def format_report(overview: StatusOverview) -> str:
    """Render an overview as a fixed-width text table."""
    lines = [
        f"{'PHASE':<28} {'STATUS':<10} {'PROCESSED':>9} {'SUCCEEDED':>9} "
        f"{'FAILED':>7} {'RATE':>7} {'DURATION':>9}",
    ]
    for phase in overview.phases:
        duration = f"{phase.duration_seconds:.1f}s" if phase.duration_seconds is not None else "-"
        lines.append(
            f"{phase.name:<28} {phase.status.value:<10} {phase.processed:>9} "
            f"{phase.succeeded:>9} {phase.failed:>7} {phase.success_rate:>6.1f}% {duration:>9}"
        )
        if phase.error:
            lines.append(f"    error: {phase.error}")
    lines.append("")
    lines.append(
        f"Progress: {overview.progress_percent}% "
        f"({overview.completed}/{overview.total} completed, {overview.failed} failed, "
        f"{overview.running} running, {overview.pending} pending)"
    )
    if overview.collection_counts:
        lines.append("")
        for collection, count in overview.collection_counts.items():
            lines.append(f"{collection:<28} {count:>9}")
    return "\n".join(lines)


__all__ = [
    "STATUS_COLLECTION",
    "PhaseOverview",
    "StatusOverview",
    "StatusQuery",
    "StatusStore",
    "format_report",
]
