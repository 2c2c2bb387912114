"""
Batched extraction of source rows.

Rows are read in primary-key order with LIMIT/OFFSET pagination. The number
of batches is fixed up front from a COUNT: ``ceil(total / batch_size)``.
The engine assumes the source is quiescent while a phase runs; rows
inserted after the count are not picked up.
"""

from __future__ import annotations

import logging
import math
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any

from storemigrate.observability import (
    ATTR_BATCH_OFFSET,
    ATTR_BATCH_SIZE,
    ATTR_SOURCE_TABLE,
    Tracer,
    create_tracer,
)
from storemigrate.sources.base import Row, SourceStore, validate_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Batch:
    """
    One page of source rows.

    Attributes:
        number: 1-based batch number
        total_batches: Number of batches planned for the table
        offset: Offset of the first row
        rows: Rows in primary-key order
    """

    number: int
    total_batches: int
    offset: int
    rows: list[Row]


def _where_clause(where: str | None) -> str:
    return f" WHERE {where}" if where else ""


class Extractor:
    """
    Reads source tables in deterministic, primary-key ordered batches.

    ``where`` fragments are trusted SQL from the phase catalogue; values
    always go through ``params``.

    Example:
        >>> extractor = Extractor(source)
        >>> async for batch in extractor.batches("oc_customer", "customer_id", 100):
        ...     for row in batch.rows:
        ...         ...
    """

    def __init__(
        self,
        source: SourceStore,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._source = source

    async def count(
        self,
        table: str,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> int:
        """
        Count the rows a table contributes.

        Args:
            table: Source table
            where: Optional filter fragment
            params: Bound values for the filter

        Returns:
            Row count
        """
        validate_identifier(table)
        sql = f"SELECT COUNT(*) FROM {table}{_where_clause(where)}"  # nosec B608
        value = await self._source.fetch_value(sql, params)
        return int(value or 0)

    async def read_batch(
        self,
        table: str,
        order_by: str,
        offset: int,
        limit: int,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> list[Row]:
        """
        Read one page of rows ordered by ``order_by`` ascending.

        Args:
            table: Source table
            order_by: Primary key column
            offset: Rows to skip
            limit: Maximum rows to return
            where: Optional filter fragment
            params: Bound values for the filter

        Returns:
            Rows as dictionaries
        """
        validate_identifier(table)
        validate_identifier(order_by)
        if offset < 0 or limit < 1:
            raise ValueError(f"Invalid page: offset={offset}, limit={limit}")

        sql = (
            f"SELECT * FROM {table}{_where_clause(where)} "  # nosec B608
            f"ORDER BY {order_by} ASC LIMIT :_limit OFFSET :_offset"
        )
        bound = {**dict(params or {}), "_limit": limit, "_offset": offset}
        with self._tracer.span(
            "storemigrate.extractor.read_batch",
            {ATTR_SOURCE_TABLE: table, ATTR_BATCH_OFFSET: offset, ATTR_BATCH_SIZE: limit},
        ):
            return await self._source.fetch_all(sql, bound)

    async def batches(
        self,
        table: str,
        order_by: str,
        batch_size: int,
        where: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> AsyncIterator[Batch]:
        """
        Iterate over a table in ``ceil(total / batch_size)`` batches.

        Args:
            table: Source table
            order_by: Primary key column
            batch_size: Rows per batch
            where: Optional filter fragment
            params: Bound values for the filter

        Yields:
            Batch objects in order
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        total = await self.count(table, where, params)
        total_batches = math.ceil(total / batch_size)
        logger.info(
            "Extracting %d rows from %s in %d batches of %d",
            total,
            table,
            total_batches,
            batch_size,
        )
        for index in range(total_batches):
            offset = index * batch_size
            rows = await self.read_batch(table, order_by, offset, batch_size, where, params)
            yield Batch(number=index + 1, total_batches=total_batches, offset=offset, rows=rows)


__all__ = ["Batch", "Extractor"]
