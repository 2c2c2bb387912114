"""
PhaseOrchestrator - Sequences migration phases.

For each entity of a phase the orchestrator streams primary-key ordered
batches from the Extractor, shapes every row with the entity's Transformer,
writes the batch through the BatchWriter and accumulates the counters.
Once every entity is loaded it creates the declared indexes, runs the
VerificationGate and records the outcome in the StatusStore.

Usage:
    >>> async with PhaseOrchestrator(source, target, EngineConfig()) as orchestrator:
    ...     await orchestrator.run_all(["phase1", "phase4"])
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Sequence
from types import TracebackType
from typing import Any

from storemigrate.batch_writer import BatchWriter
from storemigrate.config import EngineConfig
from storemigrate.documents import Aggregate
from storemigrate.exceptions import MigrationError, StoreConnectionError
from storemigrate.extractor import Extractor
from storemigrate.metrics import MigrationMetrics
from storemigrate.models import (
    BatchWriteResult,
    EntityResult,
    MigrationState,
    PhaseResult,
    PhaseStats,
)
from storemigrate.observability import (
    ATTR_ENTITY,
    ATTR_PHASE,
    ATTR_ROWS_FAILED,
    ATTR_ROWS_SUCCEEDED,
    ATTR_STATUS_NAME,
    Tracer,
    create_tracer,
)
from storemigrate.phases import PhaseDefinition, PhaseRegistry, default_registry
from storemigrate.sequences import SequenceAllocator
from storemigrate.sources.base import SourceStore
from storemigrate.status import StatusStore
from storemigrate.targets.base import DocumentStore
from storemigrate.transformers.base import Transformer
from storemigrate.verification import VerificationGate, checks_for

logger = logging.getLogger(__name__)


class PhaseOrchestrator:
    """
    Runs migration phases one after another.

    Responsibilities:
        - Skip phases that are completed or whose collections hold data
        - Drive the extract, transform and load loop of every entity
        - Absorb per-row and per-batch failures into the counters
        - Refuse to complete a phase whose counts do not match
        - Keep the phase status record and the id counters current

    Connection failures, verification mismatches and illegal status
    transitions abort the phase; the status record is marked failed and the
    error propagates to the caller.
    """

    def __init__(
        self,
        source: SourceStore,
        target: DocumentStore,
        config: EngineConfig | None = None,
        *,
        registry: PhaseRegistry | None = None,
        allocator: SequenceAllocator | None = None,
        status_store: StatusStore | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
        enable_metrics: bool = True,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            source: Relational source store
            target: Document target store
            config: Engine behaviour (defaults to EngineConfig())
            registry: Phase catalogue (defaults to the standard phases)
            allocator: Id allocator (defaults to one over ``target``)
            status_store: Status records (defaults to one over ``target``)
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
            enable_metrics: Whether to record OpenTelemetry metrics
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = enable_tracing
        self._enable_metrics = enable_metrics
        self._source = source
        self._target = target
        self._config = config or EngineConfig()
        self._registry = registry or default_registry()
        self._allocator = allocator or SequenceAllocator(
            target, tracer=tracer, enable_tracing=enable_tracing
        )
        self._status = status_store or StatusStore(
            target, tracer=tracer, enable_tracing=enable_tracing
        )
        self._extractor = Extractor(source, tracer=tracer, enable_tracing=enable_tracing)
        self._writer = BatchWriter(target, tracer=tracer, enable_tracing=enable_tracing)
        self._results: list[PhaseResult] = []

    @property
    def registry(self) -> PhaseRegistry:
        return self._registry

    @property
    def allocator(self) -> SequenceAllocator:
        return self._allocator

    @property
    def status_store(self) -> StatusStore:
        return self._status

    @property
    def results(self) -> list[PhaseResult]:
        """Results of every phase run by this orchestrator, in order."""
        return list(self._results)

    async def initialize(self) -> None:
        """
        Check both stores and bootstrap the id counters.

        Raises:
            StoreConnectionError: If either store is unreachable
        """
        await self._source.ping()
        await self._target.ping()
        if self._config.bootstrap_sequences:
            await self._allocator.initialize()
        logger.info("Orchestrator initialized (batch size %d)", self._config.batch_size)

    async def close(self) -> None:
        await self._source.close()
        await self._target.close()

    async def __aenter__(self) -> PhaseOrchestrator:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def skip_reason(self, phase: PhaseDefinition) -> str | None:
        """
        Decide whether a phase should be short-circuited.

        Returns:
            Why the phase is skipped, or None if it should run
        """
        if await self._status.state_of(phase.status_name) == MigrationState.COMPLETED:
            return "already completed"
        if self._config.skip_existing:
            for collection in phase.collections:
                existing = await self._writer.existing_count(collection)
                if existing:
                    return f"collection '{collection}' already holds {existing} documents"
        return None

    async def reset_phase(self, name: str) -> list[str]:
        """
        Return a phase to PENDING so it can be reloaded from scratch.

        Drops every collection the phase writes, companions included, then
        deletes its status record. The previous record is logged first.

        Args:
            name: Phase key or status name

        Returns:
            Names of the collections that were dropped
        """
        phase = self._registry.get(name)
        record = await self._status.get(phase.status_name)
        if record is not None:
            logger.warning(
                "Resetting %s (was %s, processed=%d succeeded=%d failed=%d, error: %s)",
                phase.status_name,
                record.status.value,
                record.processed,
                record.succeeded,
                record.failed,
                record.error,
            )

        existing = set(await self._target.list_collection_names())
        dropped: list[str] = []
        for collection in phase.target_collections:
            if collection in existing:
                await self._target.drop(collection)
                dropped.append(collection)
                logger.warning("Dropped collection %s", collection)

        await self._status.reset(phase.status_name)
        return dropped

    async def run_phase(self, name: str) -> bool:
        """
        Run one phase.

        Args:
            name: Phase key (e.g., 'phase4') or status name

        Returns:
            True when the phase completed or was skipped

        Raises:
            UnknownPhaseError: If the phase is not registered
            MigrationError: If the phase failed (after it was marked failed)
        """
        result = await self.execute_phase(name)
        return result.success

    async def run_all(self, names: Sequence[str] | None = None) -> bool:
        """
        Run phases in order, stopping at the first failure.

        Args:
            names: Phase keys (every registered phase if None)

        Returns:
            True when every phase completed or was skipped

        Raises:
            MigrationError: From the first phase that failed
        """
        phases = list(names) if names is not None else self._registry.keys
        for phase in [self._registry.get(name) for name in phases]:
            if not await self.run_phase(phase.key):
                return False
        return True

    async def execute_phase(self, name: str) -> PhaseResult:
        """
        Run one phase and return its full result.

        Raises:
            UnknownPhaseError: If the phase is not registered
            MigrationError: If the phase failed
        """
        phase = self._registry.get(name)

        reason = await self.skip_reason(phase)
        if reason is not None:
            logger.warning("Skipping %s (%s): %s", phase.key, phase.status_name, reason)
            result = PhaseResult(
                phase=phase.key,
                status_name=phase.status_name,
                success=True,
                skipped=True,
                skip_reason=reason,
            )
            self._results.append(result)
            return result

        await self._status.mark_running(phase.status_name)
        logger.info("Starting %s: %s", phase.key, phase.title)

        result = PhaseResult(phase=phase.key, status_name=phase.status_name, success=False)
        metrics = MigrationMetrics(phase.key, enable_metrics=self._enable_metrics)
        start = time.perf_counter()

        with self._tracer.span(
            "storemigrate.orchestrator.run_phase",
            {ATTR_PHASE: phase.key, ATTR_STATUS_NAME: phase.status_name},
        ) as span:
            try:
                with metrics.time_phase():
                    await self._load_and_verify(phase, result, metrics)
                    result.duration_seconds = time.perf_counter() - start
                    await self._status.mark_completed(
                        phase.status_name,
                        result.stats,
                        result.duration_seconds,
                        details=self._details(phase, result),
                    )
            except Exception as e:
                result.duration_seconds = time.perf_counter() - start
                result.error = str(e)
                self._results.append(result)
                await self._record_failure(phase, result, e)
                raise

            if span is not None:
                span.set_attribute(ATTR_ROWS_SUCCEEDED, result.stats.succeeded)
                span.set_attribute(ATTR_ROWS_FAILED, result.stats.failed)

        result.success = True
        self._results.append(result)

        if self._config.bootstrap_sequences and phase.sequences:
            await self._allocator.initialize(phase.sequences)

        logger.info(
            "Completed %s in %.2fs: %d processed, %d succeeded, %d failed, %d skipped",
            phase.key,
            result.duration_seconds,
            result.stats.processed,
            result.stats.succeeded,
            result.stats.failed,
            result.stats.skipped,
        )
        return result

    async def _record_failure(
        self, phase: PhaseDefinition, result: PhaseResult, error: Exception
    ) -> None:
        try:
            await self._status.mark_failed(
                phase.status_name,
                error,
                result.stats,
                result.duration_seconds,
                details=self._details(phase, result),
            )
        except MigrationError as status_error:
            logger.error(
                "Could not record failure of %s: %s", phase.status_name, status_error
            )

    @staticmethod
    def _details(phase: PhaseDefinition, result: PhaseResult) -> dict[str, Any]:
        return {
            "phase": phase.key,
            "title": phase.title,
            "tables_migrated": phase.tables_migrated,
            "entities": [entity.to_dict() for entity in result.entities],
            "verification": [check.to_dict() for check in result.verification],
        }

    async def _load_and_verify(
        self,
        phase: PhaseDefinition,
        result: PhaseResult,
        metrics: MigrationMetrics,
    ) -> None:
        transformers = [cls(self._allocator) for cls in phase.transformers]

        for transformer in transformers:
            entity = await self._run_entity(transformer, metrics)
            result.entities.append(entity)
            result.stats.add(entity.stats)

        if self._config.create_indexes:
            for transformer in transformers:
                await self._create_indexes(transformer)

        checks = [check for t in transformers for check in checks_for(t)]
        checks.extend(phase.extra_checks)
        gate = VerificationGate(
            self._source,
            self._target,
            metrics=metrics,
            tracer=self._tracer,
            enable_tracing=self._enable_tracing,
        )
        result.verification = await gate.check_all(checks)
        gate.raise_on_mismatch(result.verification, phase.status_name)

    async def _run_entity(
        self, transformer: Transformer[Any], metrics: MigrationMetrics
    ) -> EntityResult:
        entity = EntityResult(
            entity=transformer.name,
            source_table=transformer.source_table,
            collection=transformer.collection,
        )
        with self._tracer.span(
            "storemigrate.orchestrator.run_entity",
            {ATTR_ENTITY: transformer.name},
        ):
            await transformer.prepare(self._source)

            async for batch in self._extractor.batches(
                transformer.source_table,
                transformer.id_column,
                self._config.batch_size,
                where=transformer.where,
            ):
                entity.batches += 1
                stats = PhaseStats(processed=len(batch.rows))
                aggregates: list[Aggregate] = []

                for row in batch.rows:
                    try:
                        aggregate = await transformer.transform(row, self._source)
                    except StoreConnectionError:
                        raise
                    except Exception as e:
                        stats.failed += 1
                        entity.failed_ids.append(transformer.source_id(row))
                        logger.error(
                            "Failed to transform %s %s: %s",
                            transformer.label,
                            transformer.source_id(row),
                            e,
                        )
                        continue
                    if aggregate is None:
                        stats.skipped += 1
                        continue
                    aggregates.append(aggregate)

                metrics.record_processed(transformer.name, stats.processed)
                write_start = time.perf_counter()
                written = await self._writer.write_batch(aggregates, transformer.collection)
                stats.succeeded = written.succeeded
                stats.failed += written.failed
                entity.failed_ids.extend(written.failed_ids)
                await self._write_companions(transformer, aggregates, written, entity)
                metrics.record_batch(
                    transformer.name,
                    succeeded=stats.succeeded,
                    failed=stats.failed,
                    duration_seconds=time.perf_counter() - write_start,
                )
                entity.stats.add(stats)

                logger.info(
                    "%s batch %d/%d: %d written, %d failed",
                    transformer.name,
                    batch.number,
                    batch.total_batches,
                    stats.succeeded,
                    stats.failed,
                )
        return entity

    async def _write_companions(
        self,
        transformer: Transformer[Any],
        aggregates: list[Aggregate],
        written: BatchWriteResult,
        entity: EntityResult,
    ) -> None:
        rejected = set(written.failed_ids)
        pending: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for aggregate in aggregates:
            if aggregate.entity_id in rejected:
                continue
            for collection, documents in transformer.companions(aggregate).items():
                pending[collection].extend(documents)

        for collection, documents in pending.items():
            outcome = await self._writer.write_documents(documents, collection)
            entity.companions[collection] = (
                entity.companions.get(collection, 0) + outcome.succeeded
            )

    async def _create_indexes(self, transformer: Transformer[Any]) -> None:
        for spec in transformer.indexes:
            try:
                name = await self._target.create_index(
                    transformer.collection, list(spec.fields), unique=spec.unique
                )
            except StoreConnectionError:
                raise
            except MigrationError as e:
                logger.warning(
                    "Could not create index on %s%s: %s",
                    transformer.collection,
                    list(spec.fields),
                    e,
                )
                continue
            logger.debug("Index %s ready on %s", name, transformer.collection)


__all__ = ["PhaseOrchestrator"]
