"""
In-memory implementation of the target document store.

Provides a fast store for tests and dry runs. Data is lost when the
process exits. Unique indexes are enforced, so partial failures of an
unordered bulk insert behave the way they do against MongoDB.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping, Sequence
from typing import Any

from bson import ObjectId

from storemigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from storemigrate.targets.base import (
    DUPLICATE_KEY_CODE,
    Document,
    InsertOutcome,
    WriteFailure,
    index_name,
)

_MISSING = object()


def _matches(document: Document, filter: Mapping[str, Any] | None) -> bool:
    if not filter:
        return True
    return all(document.get(key, _MISSING) == value for key, value in filter.items())


def _index_key(document: Document, fields: Sequence[str]) -> tuple[Any, ...]:
    return tuple(document.get(name) for name in fields)


class InMemoryDocumentStore:
    """
    In-memory DocumentStore for testing.

    Collections are lists of documents; ``_id`` values are bson ObjectIds
    unless the caller supplies one. Filters support top-level equality only.
    All operations are serialized with an asyncio.Lock.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.create_index("customers", ["customer_id"], unique=True)
        >>> outcome = await store.insert_many("customers", [{"customer_id": 7}])
        >>> outcome.inserted_count
        1
    """

    def __init__(
        self,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._collections: dict[str, list[Document]] = {}
        self._unique_indexes: dict[str, list[tuple[str, ...]]] = {}
        self._indexes: dict[str, dict[str, tuple[str, ...]]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, name: str) -> list[Document]:
        return self._collections.setdefault(name, [])

    def _violates_unique(self, collection: str, document: Document) -> tuple[str, ...] | None:
        docs = self._collection(collection)
        for fields in [("_id",), *self._unique_indexes.get(collection, [])]:
            key = _index_key(document, fields)
            if any(_index_key(existing, fields) == key for existing in docs):
                return fields
        return None

    async def count_documents(
        self, collection: str, filter: Mapping[str, Any] | None = None
    ) -> int:
        async with self._lock:
            return sum(1 for doc in self._collection(collection) if _matches(doc, filter))

    async def sum_array_lengths(self, collection: str, field: str) -> int:
        async with self._lock:
            return sum(len(doc.get(field) or []) for doc in self._collection(collection))

    async def max_value(self, collection: str, field: str) -> Any:
        async with self._lock:
            values = [doc[field] for doc in self._collection(collection) if doc.get(field) is not None]
        return max(values) if values else None

    async def insert_many(self, collection: str, documents: Sequence[Document]) -> InsertOutcome:
        """
        Insert documents unordered, rejecting unique-key duplicates.

        Args:
            collection: Target collection
            documents: Documents to insert

        Returns:
            InsertOutcome with one failure per rejected document
        """
        with self._tracer.span(
            "storemigrate.target.insert_many",
            {
                ATTR_DB_SYSTEM: "memory",
                ATTR_COLLECTION: collection,
                ATTR_BATCH_SIZE: len(documents),
            },
        ):
            async with self._lock:
                inserted = 0
                failures: list[WriteFailure] = []
                for index, document in enumerate(documents):
                    doc = copy.deepcopy(dict(document))
                    doc.setdefault("_id", ObjectId())
                    violated = self._violates_unique(collection, doc)
                    if violated is not None:
                        failures.append(
                            WriteFailure(
                                index=index,
                                message=(
                                    f"E11000 duplicate key error collection: {collection} "
                                    f"index: {index_name(violated)} "
                                    f"dup key: {_index_key(doc, violated)!r}"
                                ),
                                code=DUPLICATE_KEY_CODE,
                            )
                        )
                        continue
                    self._collection(collection).append(doc)
                    inserted += 1
                return InsertOutcome(inserted_count=inserted, failures=failures)

    async def find_one(self, collection: str, filter: Mapping[str, Any]) -> Document | None:
        async with self._lock:
            for doc in self._collection(collection):
                if _matches(doc, filter):
                    return copy.deepcopy(doc)
        return None

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        sort: str | None = None,
    ) -> list[Document]:
        async with self._lock:
            found = [copy.deepcopy(doc) for doc in self._collection(collection) if _matches(doc, filter)]
        if sort:
            reverse = sort.startswith("-")
            key = sort.lstrip("-")
            found.sort(key=lambda doc: (doc.get(key) is None, doc.get(key)), reverse=reverse)
        return found

    async def upsert_one(
        self, collection: str, filter: Mapping[str, Any], document: Document
    ) -> None:
        async with self._lock:
            docs = self._collection(collection)
            for position, existing in enumerate(docs):
                if _matches(existing, filter):
                    replacement = copy.deepcopy(dict(document))
                    replacement["_id"] = existing["_id"]
                    docs[position] = replacement
                    return
            created = {**copy.deepcopy(dict(filter)), **copy.deepcopy(dict(document))}
            created.setdefault("_id", ObjectId())
            docs.append(created)

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> int:
        async with self._lock:
            docs = self._collection(collection)
            for position, existing in enumerate(docs):
                if _matches(existing, filter):
                    del docs[position]
                    return 1
        return 0

    def _counter_document(self, collection: str, key: str) -> Document:
        docs = self._collection(collection)
        for doc in docs:
            if doc["_id"] == key:
                return doc
        doc = {"_id": key}
        docs.append(doc)
        return doc

    async def increment(self, collection: str, key: str, field: str, amount: int = 1) -> int:
        async with self._lock:
            doc = self._counter_document(collection, key)
            doc[field] = doc.get(field, 0) + amount
            return doc[field]

    async def raise_to(self, collection: str, key: str, field: str, value: int) -> int:
        async with self._lock:
            doc = self._counter_document(collection, key)
            current = doc.get(field)
            doc[field] = value if current is None else max(current, value)
            return doc[field]

    async def set_value(self, collection: str, key: str, field: str, value: Any) -> None:
        async with self._lock:
            self._counter_document(collection, key)[field] = value

    async def create_index(
        self, collection: str, fields: Sequence[str], unique: bool = False
    ) -> str:
        name = index_name(fields)
        async with self._lock:
            self._indexes.setdefault(collection, {})[name] = tuple(fields)
            if unique and tuple(fields) not in self._unique_indexes.setdefault(collection, []):
                self._unique_indexes[collection].append(tuple(fields))
        return name

    def index_names(self, collection: str) -> list[str]:
        """Names of the indexes created on a collection (test helper)."""
        return sorted(self._indexes.get(collection, {}))

    async def list_collection_names(self) -> list[str]:
        async with self._lock:
            return sorted(name for name, docs in self._collections.items() if docs)

    async def drop(self, collection: str) -> None:
        async with self._lock:
            self._collections.pop(collection, None)
            self._unique_indexes.pop(collection, None)
            self._indexes.pop(collection, None)

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def clear(self) -> None:
        """Remove all collections and indexes."""
        self._collections.clear()
        self._unique_indexes.clear()
        self._indexes.clear()


__all__ = ["InMemoryDocumentStore"]
