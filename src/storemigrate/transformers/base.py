"""
Transformer base class.

A transformer is the strategy object for one entity: it names the source
table, the target collection and the aggregate model, and it shapes one
source row (plus whatever related rows it reads) into one aggregate.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar

from storemigrate.documents import Aggregate
from storemigrate.sources.base import Row, SourceStore

if TYPE_CHECKING:
    from storemigrate.sequences import SequenceAllocator

logger = logging.getLogger(__name__)

AggregateT = TypeVar("AggregateT", bound=Aggregate)


@dataclass(frozen=True)
class IndexSpec:
    """
    An ascending index created on a target collection after loading.

    Attributes:
        fields: Indexed fields, in order
        unique: Whether the index enforces uniqueness
    """

    fields: tuple[str, ...]
    unique: bool = False


@dataclass(frozen=True)
class EmbeddedChildren:
    """
    A child table embedded as an array in the parent aggregate.

    Verification compares the number of child rows that have an existing
    parent with the summed array lengths in the target.

    Attributes:
        label: Human readable name used in verification messages
        field: Array field in the aggregate
        table: Child source table
        parent_column: Column of the child table referencing the parent id
    """

    label: str
    field: str
    table: str
    parent_column: str


class Transformer(ABC, Generic[AggregateT]):
    """
    Shapes rows of one source table into aggregates.

    Class attributes:
        name: Entity name used in logs, metrics and results
        label: Singular display name used in verification messages
        source_table: Table the entity loop paginates
        id_column: Primary key column of ``source_table``
        collection: Target collection for the aggregates
        aggregate_model: pydantic model of the aggregate
        related_tables: Other tables read while transforming
        where: Optional trusted filter applied to ``source_table``
        children: Embedded arrays verified against their child tables
        indexes: Indexes created on ``collection`` after loading
        sequence: Counter bootstrapped from this collection after loading

    Subclasses implement ``transform``. Related reads for one row should be
    issued together with ``asyncio.gather``.
    """

    name: ClassVar[str]
    label: ClassVar[str]
    source_table: ClassVar[str]
    id_column: ClassVar[str]
    collection: ClassVar[str]
    aggregate_model: ClassVar[type[Aggregate]]
    related_tables: ClassVar[tuple[str, ...]] = ()
    where: ClassVar[str | None] = None
    children: ClassVar[tuple[EmbeddedChildren, ...]] = ()
    indexes: ClassVar[tuple[IndexSpec, ...]] = ()
    sequence: ClassVar[str | None] = None

    def __init__(self, allocator: SequenceAllocator | None = None) -> None:
        self._allocator = allocator

    @property
    def id_field(self) -> str:
        return self.aggregate_model.id_field

    @property
    def required_tables(self) -> tuple[str, ...]:
        return (self.source_table, *self.related_tables)

    def required_columns(self) -> dict[str, set[str]]:
        """
        Columns that must exist for the transformer to run.

        Returns:
            Mapping of table name to column names
        """
        columns: dict[str, set[str]] = {self.source_table: {self.id_column}}
        for child in self.children:
            columns.setdefault(child.table, set()).add(child.parent_column)
        return columns

    async def prepare(self, source: SourceStore) -> None:
        """Hook run once before the first batch of a phase."""
        return None

    @abstractmethod
    async def transform(self, row: Row, source: SourceStore) -> AggregateT | None:
        """
        Shape one source row into an aggregate.

        Args:
            row: Row of ``source_table``
            source: Source store for related reads

        Returns:
            The aggregate, or None to drop the row deliberately

        Raises:
            TransformError: If the row cannot be shaped. Any other exception
                is treated the same way by the entity loop, except
                StoreConnectionError which aborts the phase.
        """
        ...

    def companions(self, aggregate: AggregateT) -> dict[str, list[dict[str, Any]]]:
        """
        Documents written alongside an inserted aggregate.

        Returns:
            Mapping of collection name to documents
        """
        return {}

    def source_id(self, row: Row) -> Any:
        return row.get(self.id_column)


__all__ = [
    "AggregateT",
    "EmbeddedChildren",
    "IndexSpec",
    "Transformer",
]
