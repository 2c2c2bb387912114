"""
Count-parity verification between the source and target stores.

Verification is deliberately shallow: it compares record counts and
embedded element counts, never document contents. A phase can only
complete when every check passes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from storemigrate.exceptions import VerificationError
from storemigrate.models import VerificationResult
from storemigrate.observability import (
    ATTR_CHECK_NAME,
    ATTR_COLLECTION,
    ATTR_ENTITY,
    Tracer,
    create_tracer,
)
from storemigrate.sources.base import SourceStore, validate_identifier
from storemigrate.targets.base import DocumentStore

if TYPE_CHECKING:
    from storemigrate.metrics import MigrationMetrics
    from storemigrate.transformers.base import Transformer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountCheck:
    """
    One count-parity check.

    The source side is either a whole table (``source_table``) or a COUNT
    query (``source_sql``). The target side is either the document count
    of ``target_collection`` or, when ``target_array_field`` is set, the
    summed length of that embedded array.

    Attributes:
        entity: Entity the check belongs to
        check: Display name, used in the mismatch message
        target_collection: Collection counted in the target
        source_table: Table counted in the source
        source_sql: COUNT query used instead of ``source_table``
        source_params: Bound values for ``source_sql``
        source_where: Trusted filter applied to ``source_table``
        target_array_field: Embedded array whose lengths are summed
    """

    entity: str
    check: str
    target_collection: str
    source_table: str | None = None
    source_sql: str | None = None
    source_params: Mapping[str, Any] = field(default_factory=dict)
    source_where: str | None = None
    target_array_field: str | None = None

    def __post_init__(self) -> None:
        if (self.source_table is None) == (self.source_sql is None):
            raise ValueError("CountCheck needs exactly one of source_table or source_sql")
        if self.source_table is not None:
            validate_identifier(self.source_table)
        if self.source_where is not None and self.source_table is None:
            raise ValueError("source_where only applies to source_table")


def child_count_sql(
    child_table: str,
    parent_column: str,
    parent_table: str,
    parent_id: str,
    where: str | None = None,
) -> str:
    """
    COUNT query for child rows whose parent exists.

    Orphaned child rows are never embedded, so they are left out of the
    expected count. With ``where``, only parents matching the filter count,
    as only those are extracted.
    """
    for name in (child_table, parent_column, parent_table, parent_id):
        validate_identifier(name)
    parent = parent_table
    if where:
        parent = f"(SELECT {parent_id} FROM {parent_table} WHERE {where})"  # nosec B608
    return (
        f"SELECT COUNT(*) FROM {child_table} c "  # nosec B608
        f"JOIN {parent} p ON p.{parent_id} = c.{parent_column}"
    )


def checks_for(transformer: Transformer[Any]) -> list[CountCheck]:
    """
    Build the standard checks of an entity: its own count plus one check
    per embedded child table.

    Args:
        transformer: The entity's transformer

    Returns:
        CountChecks in declaration order
    """
    checks = [
        CountCheck(
            entity=transformer.name,
            check=f"{transformer.label} count",
            source_table=transformer.source_table,
            source_where=transformer.where,
            target_collection=transformer.collection,
        )
    ]
    for child in transformer.children:
        checks.append(
            CountCheck(
                entity=transformer.name,
                check=f"{child.label} count",
                source_sql=child_count_sql(
                    child.table,
                    child.parent_column,
                    transformer.source_table,
                    transformer.id_column,
                    transformer.where,
                ),
                target_collection=transformer.collection,
                target_array_field=child.field,
            )
        )
    return checks


class VerificationGate:
    """
    Runs count-parity checks and refuses to pass a mismatch.

    Example:
        >>> gate = VerificationGate(source, target)
        >>> results = await gate.verify(checks_for(CustomerTransformer()))
        VerificationError: CRITICAL: Customer count mismatch! source: 3, target: 2
    """

    def __init__(
        self,
        source: SourceStore,
        target: DocumentStore,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._source = source
        self._target = target
        self._metrics = metrics

    async def _source_count(self, spec: CountCheck) -> int:
        if spec.source_sql is not None:
            value = await self._source.fetch_value(spec.source_sql, spec.source_params)
        else:
            where = f" WHERE {spec.source_where}" if spec.source_where else ""
            value = await self._source.fetch_value(
                f"SELECT COUNT(*) FROM {spec.source_table}{where}"  # nosec B608
            )
        return int(value or 0)

    async def _target_count(self, spec: CountCheck) -> int:
        if spec.target_array_field:
            return await self._target.sum_array_lengths(
                spec.target_collection, spec.target_array_field
            )
        return await self._target.count_documents(spec.target_collection)

    async def check(self, spec: CountCheck) -> VerificationResult:
        """
        Run one check without raising on mismatch.

        Args:
            spec: The check

        Returns:
            VerificationResult
        """
        with self._tracer.span(
            "storemigrate.verification.check",
            {
                ATTR_ENTITY: spec.entity,
                ATTR_CHECK_NAME: spec.check,
                ATTR_COLLECTION: spec.target_collection,
            },
        ):
            source_count = await self._source_count(spec)
            target_count = await self._target_count(spec)

        result = VerificationResult(
            entity=spec.entity,
            check=spec.check,
            source_count=source_count,
            target_count=target_count,
        )
        if result.ok:
            logger.info("%s verified: %d", spec.check, source_count)
        else:
            logger.critical(
                "%s mismatch: source %d, target %d", spec.check, source_count, target_count
            )
            if self._metrics is not None:
                self._metrics.record_verification_failure(spec.check)
        return result

    async def check_all(self, specs: Iterable[CountCheck]) -> list[VerificationResult]:
        """Run every check and return all results."""
        return [await self.check(spec) for spec in specs]

    @staticmethod
    def raise_on_mismatch(
        results: Sequence[VerificationResult], phase: str | None = None
    ) -> None:
        """
        Raise for the first failed result.

        Raises:
            VerificationError: Naming both counts of the first mismatch
        """
        for result in results:
            if not result.ok:
                raise VerificationError(
                    result.entity,
                    result.check,
                    result.source_count,
                    result.target_count,
                    phase=phase,
                )

    async def verify(
        self, specs: Iterable[CountCheck], phase: str | None = None
    ) -> list[VerificationResult]:
        """
        Run every check, then raise if any failed.

        Args:
            specs: Checks to run
            phase: Status name attached to the error

        Returns:
            All results, when every check passed

        Raises:
            VerificationError: If any count differs
        """
        results = await self.check_all(specs)
        self.raise_on_mismatch(results, phase)
        return results


__all__ = [
    "CountCheck",
    "VerificationGate",
    "checks_for",
    "child_count_sql",
]
