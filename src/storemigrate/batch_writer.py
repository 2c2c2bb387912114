"""
Unordered batch writes to the target store.

A batch is inserted in one unordered bulk call: rejected documents do not
stop the others. Counts are reconciled from what the store reports, so
``succeeded + failed == attempted`` always holds.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from storemigrate.documents import Aggregate
from storemigrate.exceptions import TargetWriteError
from storemigrate.models import BatchWriteResult
from storemigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION,
    ATTR_ROWS_FAILED,
    ATTR_ROWS_SUCCEEDED,
    Tracer,
    create_tracer,
)
from storemigrate.targets.base import Document, DocumentStore

logger = logging.getLogger(__name__)

MAX_LOGGED_ERRORS = 3


class BatchWriter:
    """
    Writes batches of aggregates (or plain documents) to a collection.

    Error handling:
        - Partial failures (e.g. duplicate keys) are reconciled from the
          store's inserted count and per-index errors.
        - A TargetWriteError fails the whole batch; it is counted, logged
          and absorbed.
        - StoreConnectionError propagates.

    Example:
        >>> writer = BatchWriter(store)
        >>> result = await writer.write_batch(customers, "customers")
        >>> result.succeeded, result.failed, result.failed_ids
        (99, 1, [12])
    """

    def __init__(
        self,
        store: DocumentStore,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._store = store

    async def existing_count(self, collection: str) -> int:
        """Number of documents already in a collection."""
        return await self._store.count_documents(collection)

    async def write_batch(
        self,
        aggregates: Sequence[Aggregate],
        collection: str,
    ) -> BatchWriteResult:
        """
        Insert a batch of aggregates without ordering.

        Args:
            aggregates: Aggregates to insert, in batch order
            collection: Target collection

        Returns:
            BatchWriteResult whose ``failed_ids`` are the entity ids of
            the rejected aggregates

        Raises:
            StoreConnectionError: If the target store is unreachable
        """
        documents = [aggregate.to_document() for aggregate in aggregates]
        ids = [aggregate.entity_id for aggregate in aggregates]
        return await self.write_documents(documents, collection, ids)

    async def write_documents(
        self,
        documents: Sequence[Document],
        collection: str,
        ids: Sequence[Any] | None = None,
    ) -> BatchWriteResult:
        """
        Insert plain documents without ordering.

        Args:
            documents: Documents to insert
            collection: Target collection
            ids: Identifier reported for each document on failure
                (defaults to the batch index)

        Returns:
            BatchWriteResult
        """
        result = BatchWriteResult(collection=collection, attempted=len(documents))
        if not documents:
            return result
        ids = list(ids) if ids is not None else list(range(len(documents)))

        with self._tracer.span(
            "storemigrate.batch_writer.write_batch",
            {ATTR_COLLECTION: collection, ATTR_BATCH_SIZE: len(documents)},
        ) as span:
            try:
                outcome = await self._store.insert_many(collection, documents)
            except TargetWriteError as e:
                result.failed = len(documents)
                result.failed_ids = ids
                result.errors = [e.message]
                logger.error(
                    "Batch insert into %s failed for all %d documents: %s",
                    collection,
                    len(documents),
                    e.message,
                )
                return result

            result.succeeded = outcome.inserted_count
            result.failed = len(documents) - outcome.inserted_count
            result.failed_ids = [ids[index] for index in outcome.failed_indexes if index < len(ids)]
            result.errors = [failure.message for failure in outcome.failures]

            if span is not None:
                span.set_attribute(ATTR_ROWS_SUCCEEDED, result.succeeded)
                span.set_attribute(ATTR_ROWS_FAILED, result.failed)

        if result.failed:
            logger.error(
                "%d of %d documents rejected by %s (ids: %s)",
                result.failed,
                len(documents),
                collection,
                result.failed_ids,
            )
            for message in result.errors[:MAX_LOGGED_ERRORS]:
                logger.error("   %s", message)
        else:
            logger.debug("Inserted %d documents into %s", result.succeeded, collection)
        return result


__all__ = ["BatchWriter"]
