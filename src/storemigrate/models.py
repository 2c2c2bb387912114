"""
Data models for migration runs.

Models in this module:

Enums:
    - MigrationState: Lifecycle of a phase status record

Records:
    - MigrationStatus: Persisted status of one phase
    - PhaseStats: Row counters shared by entities and phases

Results:
    - BatchWriteResult: Outcome of one batch write
    - EntityResult: Outcome of one entity loop
    - VerificationResult: Outcome of one count-parity check
    - PhaseResult: Outcome of one phase run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class MigrationState(Enum):
    """
    Lifecycle of a phase status record.

    State machine transitions:
        PENDING -> RUNNING -> COMPLETED
                      |
                      +----> FAILED

    There are no outgoing edges from COMPLETED or FAILED, and a record found
    in RUNNING cannot be restarted. In all three cases an operator reset
    deletes the record, which returns the phase to PENDING.

    Attributes:
        PENDING: No record exists yet, the phase has never started.
        RUNNING: The phase is in progress (or a previous process died in it).
        COMPLETED: All entities loaded and verified.
        FAILED: The phase aborted; error and stack are recorded.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """
        Check if this is a terminal state.

        Returns:
            True for COMPLETED and FAILED.
        """
        return self in (MigrationState.COMPLETED, MigrationState.FAILED)

    def can_transition_to(self, target: MigrationState) -> bool:
        """
        Check whether moving to ``target`` is a legal transition.

        Args:
            target: The requested state.

        Returns:
            True if the edge exists in VALID_TRANSITIONS.
        """
        return target in VALID_TRANSITIONS[self]


VALID_TRANSITIONS: dict[MigrationState, frozenset[MigrationState]] = {
    MigrationState.PENDING: frozenset({MigrationState.RUNNING}),
    MigrationState.RUNNING: frozenset({MigrationState.COMPLETED, MigrationState.FAILED}),
    MigrationState.COMPLETED: frozenset(),  # Terminal
    MigrationState.FAILED: frozenset(),  # Terminal
}


@dataclass
class PhaseStats:
    """
    Row counters.

    ``processed`` counts every source row read, including rows that failed
    or were dropped by their transformer. ``skipped`` counts explicit drops.

    Attributes:
        processed: Rows read from the source.
        succeeded: Aggregates written to the target.
        failed: Rows lost to transform or write failures.
        skipped: Rows the transformer chose not to migrate.
    """

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    def add(self, other: PhaseStats) -> None:
        """Accumulate another set of counters into this one."""
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.skipped += other.skipped

    @property
    def success_rate(self) -> float:
        """Percentage of processed rows that were written (100.0 when none)."""
        if self.processed == 0:
            return 100.0
        return round(self.succeeded / self.processed * 100, 2)

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass
class MigrationStatus:
    """
    Persisted status record of one phase.

    Attributes:
        name: Unique status name (e.g., 'phase4_user_management').
        status: Current lifecycle state.
        first_run: Set once, the first time the phase starts.
        last_run: Time of the most recent start.
        duration_seconds: Wall time of the most recent run.
        processed: Rows read during the most recent run.
        succeeded: Aggregates written during the most recent run.
        failed: Rows failed during the most recent run.
        error: Error message when FAILED.
        stack: Formatted traceback when FAILED.
        details: Free-form run details (tables, entity results, checks).
        created_at: When the record was created.
        updated_at: When the record was last written.
    """

    name: str
    status: MigrationState = MigrationState.PENDING
    first_run: datetime | None = None
    last_run: datetime | None = None
    duration_seconds: float | None = None
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    error: str | None = None
    stack: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def success_rate(self) -> float:
        """Percentage of processed rows that were written."""
        if self.processed == 0:
            return 100.0 if self.status == MigrationState.COMPLETED else 0.0
        return round(self.succeeded / self.processed * 100, 2)

    def to_document(self) -> dict[str, Any]:
        """
        Convert to the document stored in the status collection.

        Returns:
            Dictionary keyed by the record's field names.
        """
        return {
            "name": self.name,
            "status": self.status.value,
            "first_run": self.first_run,
            "last_run": self.last_run,
            "duration_seconds": self.duration_seconds,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "error": self.error,
            "stack": self.stack,
            "details": self.details,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> MigrationStatus:
        """
        Build a record from a stored document.

        Args:
            doc: Document read from the status collection.

        Returns:
            MigrationStatus instance.
        """
        return cls(
            name=doc["name"],
            status=MigrationState(doc.get("status", MigrationState.PENDING.value)),
            first_run=doc.get("first_run"),
            last_run=doc.get("last_run"),
            duration_seconds=doc.get("duration_seconds"),
            processed=doc.get("processed", 0),
            succeeded=doc.get("succeeded", 0),
            failed=doc.get("failed", 0),
            error=doc.get("error"),
            stack=doc.get("stack"),
            details=doc.get("details") or {},
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


@dataclass
class BatchWriteResult:
    """
    Outcome of one unordered batch write.

    Attributes:
        collection: Target collection.
        attempted: Documents handed to the store.
        succeeded: Documents the store reports as inserted.
        failed: attempted - succeeded.
        failed_ids: Entity ids of the documents that were not inserted.
        errors: Error messages reported by the store.
    """

    collection: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_ids: list[Any] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class VerificationResult:
    """
    Outcome of one count-parity check.

    Attributes:
        entity: Entity the check belongs to.
        check: Human readable check name (e.g., 'Customer count').
        source_count: Count in the source store.
        target_count: Count in the target store.
    """

    entity: str
    check: str
    source_count: int
    target_count: int

    @property
    def ok(self) -> bool:
        return self.source_count == self.target_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "check": self.check,
            "source_count": self.source_count,
            "target_count": self.target_count,
            "ok": self.ok,
        }


@dataclass
class EntityResult:
    """
    Outcome of one entity loop inside a phase.

    Attributes:
        entity: Entity name.
        source_table: Table the rows came from.
        collection: Collection the aggregates went to.
        stats: Row counters.
        batches: Number of batches read.
        failed_ids: Source ids of rows that failed.
        companions: Documents written per companion collection.
    """

    entity: str
    source_table: str
    collection: str
    stats: PhaseStats = field(default_factory=PhaseStats)
    batches: int = 0
    failed_ids: list[Any] = field(default_factory=list)
    companions: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "source_table": self.source_table,
            "collection": self.collection,
            **self.stats.to_dict(),
            "batches": self.batches,
            "failed_ids": list(self.failed_ids),
            "companions": dict(self.companions),
        }


@dataclass
class PhaseResult:
    """
    Outcome of one phase run.

    Attributes:
        phase: Phase key (e.g., 'phase4').
        status_name: Status record name.
        success: True when the phase completed or was skipped.
        skipped: True when the phase was short-circuited.
        skip_reason: Why the phase was skipped.
        stats: Aggregated row counters of all entities.
        entities: Per-entity results.
        verification: Results of the parity checks.
        duration_seconds: Wall time of the run.
        error: Error message when the run failed.
        completed_at: When the run ended.
    """

    phase: str
    status_name: str
    success: bool
    skipped: bool = False
    skip_reason: str | None = None
    stats: PhaseStats = field(default_factory=PhaseStats)
    entities: list[EntityResult] = field(default_factory=list)
    verification: list[VerificationResult] = field(default_factory=list)
    duration_seconds: float = 0.0
    error: str | None = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


__all__ = [
    "MigrationState",
    "VALID_TRANSITIONS",
    "PhaseStats",
    "MigrationStatus",
    "BatchWriteResult",
    "VerificationResult",
    "EntityResult",
    "PhaseResult",
]
