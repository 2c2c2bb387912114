"""
OpenTelemetry metrics for migration runs.

Metrics Exposed:
    - storemigrate.rows.processed (Counter): Source rows read by an entity loop
    - storemigrate.rows.succeeded (Counter): Aggregates written to the target
    - storemigrate.rows.failed (Counter): Rows lost to transform or write failures
    - storemigrate.batch.duration (Histogram): Time spent writing one batch
    - storemigrate.phase.duration (Histogram): Wall time of a phase
    - storemigrate.verification.failures (Counter): Count-parity mismatches

All points carry the ``phase`` attribute; row and batch points also carry
``entity``. Without a configured meter provider the OpenTelemetry API
discards the points.

Example:
    >>> metrics = MigrationMetrics("phase4")
    >>> metrics.record_batch("customers", succeeded=99, failed=1, duration_seconds=0.4)
    >>> with metrics.time_phase():
    ...     await run()
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics

_meter: Any = None


def _get_meter() -> Any:
    """
    Get or create the meter instance for the storemigrate namespace.

    Returns:
        OpenTelemetry Meter
    """
    global _meter
    if _meter is None:
        _meter = metrics.get_meter("storemigrate", version="1.0.0")
    return _meter


def reset_meter() -> None:
    """Reset the global meter instance (used by tests)."""
    global _meter
    _meter = None


@dataclass(frozen=True)
class MetricSnapshot:
    """
    Snapshot of the values a MigrationMetrics instance has recorded.

    Attributes:
        rows_processed: Total rows read
        rows_succeeded: Total aggregates written
        rows_failed: Total rows failed
        batches: Number of batches written
        verification_failures: Number of failed parity checks
        phase_duration_seconds: Last recorded phase duration
    """

    rows_processed: int = 0
    rows_succeeded: int = 0
    rows_failed: int = 0
    batches: int = 0
    verification_failures: int = 0
    phase_duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "rows_processed": self.rows_processed,
            "rows_succeeded": self.rows_succeeded,
            "rows_failed": self.rows_failed,
            "batches": self.batches,
            "verification_failures": self.verification_failures,
            "phase_duration_seconds": self.phase_duration_seconds,
        }


@dataclass
class MigrationMetrics:
    """
    Container for the metric instruments of one phase run.

    Attributes:
        phase: Phase key used as the ``phase`` attribute
        enable_metrics: When False, instruments come from the OpenTelemetry
            no-op meter
    """

    phase: str
    enable_metrics: bool = True

    _rows_processed_counter: Any = field(default=None, init=False, repr=False)
    _rows_succeeded_counter: Any = field(default=None, init=False, repr=False)
    _rows_failed_counter: Any = field(default=None, init=False, repr=False)
    _batch_duration_histogram: Any = field(default=None, init=False, repr=False)
    _phase_duration_histogram: Any = field(default=None, init=False, repr=False)
    _verification_failures_counter: Any = field(default=None, init=False, repr=False)

    _rows_processed: int = field(default=0, init=False, repr=False)
    _rows_succeeded: int = field(default=0, init=False, repr=False)
    _rows_failed: int = field(default=0, init=False, repr=False)
    _batches: int = field(default=0, init=False, repr=False)
    _verification_failures: int = field(default=0, init=False, repr=False)
    _phase_duration: float | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        meter = _get_meter() if self.enable_metrics else metrics.NoOpMeter("storemigrate")

        self._rows_processed_counter = meter.create_counter(
            name="storemigrate.rows.processed",
            unit="rows",
            description="Source rows read by entity loops",
        )
        self._rows_succeeded_counter = meter.create_counter(
            name="storemigrate.rows.succeeded",
            unit="rows",
            description="Aggregates written to the target store",
        )
        self._rows_failed_counter = meter.create_counter(
            name="storemigrate.rows.failed",
            unit="rows",
            description="Rows lost to transform or write failures",
        )
        self._batch_duration_histogram = meter.create_histogram(
            name="storemigrate.batch.duration",
            unit="s",
            description="Time spent writing one batch in seconds",
        )
        self._phase_duration_histogram = meter.create_histogram(
            name="storemigrate.phase.duration",
            unit="s",
            description="Wall time of a migration phase in seconds",
        )
        self._verification_failures_counter = meter.create_counter(
            name="storemigrate.verification.failures",
            unit="failures",
            description="Number of count-parity verification failures",
        )

    def _attributes(self, entity: str | None = None) -> dict[str, str]:
        attrs = {"phase": self.phase}
        if entity:
            attrs["entity"] = entity
        return attrs

    def record_processed(self, entity: str, count: int) -> None:
        """
        Record source rows read for an entity.

        Args:
            entity: Entity name
            count: Number of rows read
        """
        self._rows_processed_counter.add(count, self._attributes(entity))
        self._rows_processed += count

    def record_batch(
        self,
        entity: str,
        succeeded: int,
        failed: int,
        duration_seconds: float,
    ) -> None:
        """
        Record the outcome of one batch write.

        Args:
            entity: Entity name
            succeeded: Aggregates inserted
            failed: Rows that failed in transform or write
            duration_seconds: Time spent in the write
        """
        attrs = self._attributes(entity)
        self._rows_succeeded_counter.add(succeeded, attrs)
        if failed:
            self._rows_failed_counter.add(failed, attrs)
        self._batch_duration_histogram.record(duration_seconds, attrs)

        self._rows_succeeded += succeeded
        self._rows_failed += failed
        self._batches += 1

    def record_verification_failure(self, check: str) -> None:
        """
        Record a count-parity mismatch.

        Args:
            check: Name of the failing check
        """
        attrs = {**self._attributes(), "check": check}
        self._verification_failures_counter.add(1, attrs)
        self._verification_failures += 1

    def record_phase_duration(self, duration_seconds: float, success: bool = True) -> None:
        """
        Record the wall time of the phase.

        Args:
            duration_seconds: Duration in seconds
            success: Whether the phase completed
        """
        attrs = {**self._attributes(), "success": str(success).lower()}
        self._phase_duration_histogram.record(duration_seconds, attrs)
        self._phase_duration = duration_seconds

    @contextmanager
    def time_phase(self) -> Generator[None, None, None]:
        """
        Context manager that records the phase duration on exit.

        The ``success`` attribute is false when the block raises.
        """
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        finally:
            self.record_phase_duration(time.perf_counter() - start, success=success)

    def get_snapshot(self) -> MetricSnapshot:
        """
        Get a snapshot of the recorded values.

        Returns:
            MetricSnapshot with current totals
        """
        return MetricSnapshot(
            rows_processed=self._rows_processed,
            rows_succeeded=self._rows_succeeded,
            rows_failed=self._rows_failed,
            batches=self._batches,
            verification_failures=self._verification_failures,
            phase_duration_seconds=self._phase_duration,
        )


__all__ = [
    "MigrationMetrics",
    "MetricSnapshot",
    "reset_meter",
]
