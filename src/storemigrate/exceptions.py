"""
Exceptions raised by the storemigrate engine.

Exception Hierarchy:
    MigrationError (base)
    +-- ConfigurationError
    +-- UnknownPhaseError
    +-- StoreConnectionError
    +-- TransformError
    +-- TargetWriteError
    +-- VerificationError
    +-- InvalidStateTransitionError
    +-- SequenceAllocationError

Propagation policy:
    - TransformError and TargetWriteError describe row or batch level
      partial failures. The engine absorbs them, logs them and counts
      them in the phase statistics.
    - VerificationError, StoreConnectionError and
      InvalidStateTransitionError terminate the running phase. The phase
      status record is marked failed with the error message and stack.
    - ConfigurationError and UnknownPhaseError surface before any store
      is contacted.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: Data integrity failure. A phase can never complete with it.
        ERROR: The phase, batch or row failed.
        WARNING: Degraded operation that the run survives.
        INFO: Informational condition, not a failure.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
            ErrorSeverity.INFO: logging.INFO,
        }
        return level_map[self]


class MigrationError(Exception):
    """
    Base exception for all storemigrate errors.

    Attributes:
        message: Human-readable error description.
        phase: Status name of the phase that raised the error, if known.
        fatal: Whether the error terminates the running phase.
    """

    severity: ErrorSeverity = ErrorSeverity.ERROR
    fatal: bool = True

    def __init__(self, message: str, *, phase: str | None = None) -> None:
        self.message = message
        self.phase = phase
        super().__init__(message)

    def __str__(self) -> str:
        if self.phase:
            return f"{self.message} (phase={self.phase})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for status records and logs.

        Returns:
            Dictionary with the error type, message, severity and phase.
        """
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "fatal": self.fatal,
            "phase": self.phase,
        }


class ConfigurationError(MigrationError):
    """Raised when settings are missing or invalid."""


class UnknownPhaseError(MigrationError):
    """
    Raised when a phase name is not registered.

    Attributes:
        name: The phase name that was requested.
        available: The registered phase names.
    """

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = list(available)
        super().__init__(f"Unknown phase '{name}'. Available phases: {', '.join(available)}")


class StoreConnectionError(MigrationError):
    """
    Raised when the source or target store cannot be reached.

    Connection loss is never absorbed per row or per batch; it aborts the
    running phase.

    Attributes:
        store: Which store failed ("source" or "target").
    """

    severity = ErrorSeverity.CRITICAL

    def __init__(self, store: str, message: str, *, phase: str | None = None) -> None:
        self.store = store
        super().__init__(f"{store} store connection failed: {message}", phase=phase)


class TransformError(MigrationError):
    """
    Raised when a source row cannot be shaped into its aggregate.

    Attributes:
        entity: Entity name being transformed.
        source_id: Primary key of the offending row.
    """

    fatal = False

    def __init__(self, entity: str, source_id: Any, message: str) -> None:
        self.entity = entity
        self.source_id = source_id
        super().__init__(f"Failed to transform {entity} {source_id}: {message}")


class TargetWriteError(MigrationError):
    """
    Raised when a write to the target store fails for reasons other than
    connectivity.

    Attributes:
        collection: Target collection of the failed write.
    """

    fatal = False

    def __init__(self, collection: str, message: str) -> None:
        self.collection = collection
        super().__init__(f"Write to '{collection}' failed: {message}")


class VerificationError(MigrationError):
    """
    Raised when source and target counts disagree after a phase.

    Attributes:
        entity: Entity being verified.
        check: Name of the failing check.
        source_count: Row count in the source store.
        target_count: Document (or embedded element) count in the target store.
    """

    severity = ErrorSeverity.CRITICAL

    def __init__(
        self,
        entity: str,
        check: str,
        source_count: int,
        target_count: int,
        *,
        phase: str | None = None,
    ) -> None:
        self.entity = entity
        self.check = check
        self.source_count = source_count
        self.target_count = target_count
        super().__init__(
            f"CRITICAL: {check} mismatch! source: {source_count}, target: {target_count}",
            phase=phase,
        )


class InvalidStateTransitionError(MigrationError):
    """
    Raised when a status record would move along an illegal edge.

    A phase left in running or failed must be reset by an operator
    before it can run again.

    Attributes:
        name: Status record name.
        current_state: State currently recorded.
        target_state: State that was requested.
    """

    def __init__(self, name: str, current_state: Any, target_state: Any) -> None:
        self.name = name
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid status transition for '{name}': "
            f"{getattr(current_state, 'value', current_state)} -> "
            f"{getattr(target_state, 'value', target_state)}",
            phase=name,
        )


class SequenceAllocationError(MigrationError):
    """
    Raised when an id cannot be allocated for an entity.

    Attributes:
        entity: Counter entity name.
    """

    def __init__(self, entity: str, message: str) -> None:
        self.entity = entity
        super().__init__(f"Cannot allocate id for '{entity}': {message}")


__all__ = [
    "ErrorSeverity",
    "MigrationError",
    "ConfigurationError",
    "UnknownPhaseError",
    "StoreConnectionError",
    "TransformError",
    "TargetWriteError",
    "VerificationError",
    "InvalidStateTransitionError",
    "SequenceAllocationError",
]
