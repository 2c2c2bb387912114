"""
Target document store protocol and shared result types.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

Document = dict[str, Any]

DUPLICATE_KEY_CODE = 11000


@dataclass(frozen=True)
class WriteFailure:
    """
    One document rejected by an unordered bulk insert.

    Attributes:
        index: Position of the document in the submitted batch
        message: Error message reported by the store
        code: Store error code (11000 for duplicate keys)
    """

    index: int
    message: str
    code: int | None = None


@dataclass
class InsertOutcome:
    """
    Result of an unordered bulk insert.

    Attributes:
        inserted_count: Documents the store reports as inserted
        failures: Documents that were rejected
    """

    inserted_count: int
    failures: list[WriteFailure] = field(default_factory=list)

    @property
    def failed_indexes(self) -> list[int]:
        return [failure.index for failure in self.failures]


@runtime_checkable
class DocumentStore(Protocol):
    """
    Protocol for the target document store.

    Error contract:
        - Connection loss raises StoreConnectionError from every method.
        - ``insert_many`` reports rejected documents in its outcome instead
          of raising; any other write failure raises TargetWriteError.
        - ``increment`` and ``raise_to`` are atomic per document.
    """

    async def count_documents(
        self, collection: str, filter: Mapping[str, Any] | None = None
    ) -> int:
        """Count documents matching an equality filter."""
        ...

    async def sum_array_lengths(self, collection: str, field: str) -> int:
        """Sum the lengths of an embedded array over all documents (missing counts as 0)."""
        ...

    async def max_value(self, collection: str, field: str) -> Any:
        """Return the largest non-null value of a field, or None."""
        ...

    async def insert_many(self, collection: str, documents: Sequence[Document]) -> InsertOutcome:
        """
        Insert documents without stopping at the first rejected one.

        Args:
            collection: Target collection
            documents: Documents to insert, in batch order

        Returns:
            InsertOutcome with the inserted count and per-index failures
        """
        ...

    async def find_one(self, collection: str, filter: Mapping[str, Any]) -> Document | None:
        ...

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        sort: str | None = None,
    ) -> list[Document]:
        ...

    async def upsert_one(
        self, collection: str, filter: Mapping[str, Any], document: Document
    ) -> None:
        """Replace the matching document, inserting it when absent."""
        ...

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> int:
        """Delete the first matching document and return how many were deleted."""
        ...

    async def increment(self, collection: str, key: str, field: str, amount: int = 1) -> int:
        """
        Atomically add ``amount`` to a numeric field, creating the document
        if needed.

        Returns:
            The value after the increment
        """
        ...

    async def raise_to(self, collection: str, key: str, field: str, value: int) -> int:
        """
        Atomically set a numeric field to ``max(current, value)``, creating
        the document if needed.

        Returns:
            The value after the update
        """
        ...

    async def set_value(self, collection: str, key: str, field: str, value: Any) -> None:
        """Overwrite one field, creating the document if needed."""
        ...

    async def create_index(
        self, collection: str, fields: Sequence[str], unique: bool = False
    ) -> str:
        """Create an ascending index and return its name."""
        ...

    async def list_collection_names(self) -> list[str]:
        ...

    async def drop(self, collection: str) -> None:
        ...

    async def ping(self) -> None:
        """
        Verify the store is reachable.

        Raises:
            StoreConnectionError: If it is not
        """
        ...

    async def close(self) -> None:
        ...


def index_name(fields: Sequence[str]) -> str:
    """Build the conventional ``field_1`` index name for ascending fields."""
    return "_".join(f"{name}_1" for name in fields)


__all__ = [
    "DUPLICATE_KEY_CODE",
    "Document",
    "DocumentStore",
    "InsertOutcome",
    "WriteFailure",
    "index_name",
]
