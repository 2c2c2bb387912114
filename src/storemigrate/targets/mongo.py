"""
MongoDB implementation of the target document store, built on motor.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import BulkWriteError, ConnectionFailure, PyMongoError

from storemigrate.exceptions import StoreConnectionError, TargetWriteError
from storemigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from storemigrate.targets.base import Document, InsertOutcome, WriteFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10000


class MongoDocumentStore:
    """
    DocumentStore backed by a MongoDB database.

    Connection-class pymongo errors are raised as StoreConnectionError.
    Other pymongo errors raised by write operations become
    TargetWriteError; read errors propagate unchanged.

    Example:
        >>> store = MongoDocumentStore.from_uri("mongodb://localhost:27017", "opencart")
        >>> await store.ping()
        >>> await store.count_documents("customers")
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        client: AsyncIOMotorClient | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the store.

        Args:
            database: Motor database handle
            client: Owning client, closed by close() when given
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._db = database
        self._client = client

    @classmethod
    def from_uri(
        cls,
        uri: str,
        database: str,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        **kwargs: Any,
    ) -> MongoDocumentStore:
        """
        Create a store owning a new motor client.

        Args:
            uri: MongoDB connection string
            database: Database name
            timeout_ms: Server selection, connect and socket timeout
            **kwargs: Passed to the store constructor

        Returns:
            MongoDocumentStore
        """
        client: AsyncIOMotorClient = AsyncIOMotorClient(
            uri,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        return cls(client[database], client=client, **kwargs)

    def _span_attributes(self, collection: str, operation: str) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "mongodb",
            ATTR_DB_NAME: self._db.name,
            ATTR_COLLECTION: collection,
            ATTR_DB_OPERATION: operation,
        }

    @contextmanager
    def _errors(self, collection: str, write: bool = False) -> Iterator[None]:
        try:
            yield
        except ConnectionFailure as e:
            raise StoreConnectionError("target", str(e)) from e
        except PyMongoError as e:
            if write:
                raise TargetWriteError(collection, str(e)) from e
            raise

    async def count_documents(
        self, collection: str, filter: Mapping[str, Any] | None = None
    ) -> int:
        with self._errors(collection):
            return await self._db[collection].count_documents(dict(filter or {}))

    async def sum_array_lengths(self, collection: str, field: str) -> int:
        pipeline = [
            {"$project": {"length": {"$size": {"$ifNull": [f"${field}", []]}}}},
            {"$group": {"_id": None, "total": {"$sum": "$length"}}},
        ]
        with self._errors(collection):
            results = await self._db[collection].aggregate(pipeline).to_list(length=1)
        return int(results[0]["total"]) if results else 0

    async def max_value(self, collection: str, field: str) -> Any:
        with self._errors(collection):
            doc = await self._db[collection].find_one(
                {field: {"$ne": None}},
                projection={field: 1},
                sort=[(field, DESCENDING)],
            )
        return doc.get(field) if doc else None

    async def insert_many(self, collection: str, documents: Sequence[Document]) -> InsertOutcome:
        """
        Insert documents with ``ordered=False``.

        A BulkWriteError is reconciled into an InsertOutcome from the
        reported ``nInserted`` and ``writeErrors`` instead of being raised.

        Args:
            collection: Target collection
            documents: Documents to insert

        Returns:
            InsertOutcome

        Raises:
            StoreConnectionError: If the connection is lost
            TargetWriteError: For any other failure of the whole write
        """
        if not documents:
            return InsertOutcome(inserted_count=0)

        attributes = self._span_attributes(collection, "insert_many")
        attributes[ATTR_BATCH_SIZE] = len(documents)
        with self._tracer.span("storemigrate.target.insert_many", attributes):
            try:
                result = await self._db[collection].insert_many(
                    [dict(doc) for doc in documents], ordered=False
                )
            except BulkWriteError as e:
                details = e.details
                failures = [
                    WriteFailure(
                        index=error["index"],
                        message=error.get("errmsg", ""),
                        code=error.get("code"),
                    )
                    for error in details.get("writeErrors", [])
                ]
                return InsertOutcome(
                    inserted_count=int(details.get("nInserted", 0)),
                    failures=failures,
                )
            except ConnectionFailure as e:
                raise StoreConnectionError("target", str(e)) from e
            except PyMongoError as e:
                raise TargetWriteError(collection, str(e)) from e
            return InsertOutcome(inserted_count=len(result.inserted_ids))

    async def find_one(self, collection: str, filter: Mapping[str, Any]) -> Document | None:
        with self._errors(collection):
            return await self._db[collection].find_one(dict(filter))

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        sort: str | None = None,
    ) -> list[Document]:
        cursor = self._db[collection].find(dict(filter or {}))
        if sort:
            direction = DESCENDING if sort.startswith("-") else ASCENDING
            cursor = cursor.sort(sort.lstrip("-"), direction)
        with self._errors(collection):
            return await cursor.to_list(length=None)

    async def upsert_one(
        self, collection: str, filter: Mapping[str, Any], document: Document
    ) -> None:
        with self._errors(collection, write=True):
            await self._db[collection].replace_one(dict(filter), dict(document), upsert=True)

    async def delete_one(self, collection: str, filter: Mapping[str, Any]) -> int:
        with self._errors(collection, write=True):
            result = await self._db[collection].delete_one(dict(filter))
        return result.deleted_count

    async def increment(self, collection: str, key: str, field: str, amount: int = 1) -> int:
        with self._errors(collection, write=True):
            doc = await self._db[collection].find_one_and_update(
                {"_id": key},
                {"$inc": {field: amount}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return int(doc[field])

    async def raise_to(self, collection: str, key: str, field: str, value: int) -> int:
        with self._errors(collection, write=True):
            doc = await self._db[collection].find_one_and_update(
                {"_id": key},
                {"$max": {field: value}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return int(doc[field])

    async def set_value(self, collection: str, key: str, field: str, value: Any) -> None:
        with self._errors(collection, write=True):
            await self._db[collection].update_one({"_id": key}, {"$set": {field: value}}, upsert=True)

    async def create_index(
        self, collection: str, fields: Sequence[str], unique: bool = False
    ) -> str:
        keys = [(name, ASCENDING) for name in fields]
        with self._errors(collection, write=True):
            return await self._db[collection].create_index(keys, unique=unique)

    async def list_collection_names(self) -> list[str]:
        with self._errors("*"):
            return sorted(await self._db.list_collection_names())

    async def drop(self, collection: str) -> None:
        with self._errors(collection, write=True):
            await self._db.drop_collection(collection)

    async def ping(self) -> None:
        """
        Send the ``ping`` admin command.

        Raises:
            StoreConnectionError: If the server cannot be reached
        """
        try:
            await self._db.command("ping")
        except PyMongoError as e:
            raise StoreConnectionError("target", str(e)) from e
        logger.debug("Target store reachable (%s)", self._db.name)

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()


__all__ = ["MongoDocumentStore"]
