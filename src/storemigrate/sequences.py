"""
Primary key allocation for migrated entities.

Counters live in the target store's ``counters`` collection, one document
per entity::

    {"_id": "order_id", "sequence_value": 4500}

Every allocation is an atomic find-and-increment, so ids stay unique
across processes. When the counter store fails, the allocator falls back
to an in-process cache (DegradedCacheStrategy) and logs a warning. The
fallback is neither crash-safe nor safe with several processes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from storemigrate.exceptions import (
    SequenceAllocationError,
    StoreConnectionError,
    TargetWriteError,
)
from storemigrate.observability import ATTR_SEQUENCE_ENTITY, Tracer, create_tracer
from storemigrate.targets.base import DocumentStore

logger = logging.getLogger(__name__)

COUNTER_COLLECTION = "counters"
SEQUENCE_FIELD = "sequence_value"


def counter_key(entity: str) -> str:
    """Document id of an entity's counter (e.g. 'order' -> 'order_id')."""
    return f"{entity}_id"


@dataclass(frozen=True)
class SequenceEntity:
    """
    An entity whose ids are issued by the allocator.

    Attributes:
        name: Counter name (e.g., 'order')
        collection: Target collection holding the entity
        id_field: Field carrying the id in that collection
    """

    name: str
    collection: str
    id_field: str


DEFAULT_SEQUENCE_ENTITIES: tuple[SequenceEntity, ...] = (
    SequenceEntity("country", "countries", "country_id"),
    SequenceEntity("zone", "zones", "zone_id"),
    SequenceEntity("language", "languages", "language_id"),
    SequenceEntity("admin", "admins", "user_id"),
    SequenceEntity("customer", "customers", "customer_id"),
    SequenceEntity("manufacturer", "manufacturers", "manufacturer_id"),
    SequenceEntity("category", "categories", "category_id"),
    SequenceEntity("product", "products", "product_id"),
    SequenceEntity("order", "orders", "order_id"),
    SequenceEntity("order_product", "order_products", "order_product_id"),
)


class AtomicCounterStrategy:
    """Allocates ids with an atomic increment on the counter document."""

    def __init__(self, store: DocumentStore, collection: str = COUNTER_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    async def next(self, entity: str) -> int:
        return await self._store.increment(self._collection, counter_key(entity), SEQUENCE_FIELD, 1)

    async def reserve(self, entity: str, count: int) -> list[int]:
        end = await self._store.increment(
            self._collection, counter_key(entity), SEQUENCE_FIELD, count
        )
        return list(range(end - count + 1, end + 1))

    async def raise_to(self, entity: str, value: int) -> int:
        return await self._store.raise_to(
            self._collection, counter_key(entity), SEQUENCE_FIELD, value
        )


class DegradedCacheStrategy:
    """
    In-process fallback used while the counter store is unavailable.

    Each entity continues from the last value the allocator observed
    (or seeded). Values are lost when the process exits.
    """

    def __init__(self) -> None:
        self._values: dict[str, int] = {}

    def seed(self, entity: str, value: int) -> None:
        """Never moves an entity's cached value backwards."""
        self._values[entity] = max(self._values.get(entity, 0), value)

    def next(self, entity: str) -> int:
        self._values[entity] = self._values.get(entity, 0) + 1
        return self._values[entity]

    def current(self, entity: str) -> int | None:
        return self._values.get(entity)


class SequenceAllocator:
    """
    Issues monotonically increasing ids per entity.

    Example:
        >>> allocator = SequenceAllocator(store)
        >>> await allocator.initialize()      # counters raised to target maxima
        >>> await allocator.next_id("order")  # 4501 when max(order_id) is 4500
    """

    def __init__(
        self,
        store: DocumentStore,
        entities: tuple[SequenceEntity, ...] | list[SequenceEntity] = DEFAULT_SEQUENCE_ENTITIES,
        *,
        primary: AtomicCounterStrategy | None = None,
        fallback: DegradedCacheStrategy | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the allocator.

        Args:
            store: Target store holding the counters collection
            entities: Entities bootstrapped by initialize()
            primary: Atomic strategy (defaults to one over ``store``)
            fallback: Degraded strategy used when the primary fails
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._store = store
        self._entities = {entity.name: entity for entity in entities}
        self._primary = primary or AtomicCounterStrategy(store)
        self._fallback = fallback or DegradedCacheStrategy()
        self._last_seen: dict[str, int] = {}
        self._unsynced: dict[str, int] = {}
        self._degraded_entities: set[str] = set()

    @property
    def degraded(self) -> bool:
        """True once any id has been issued by the fallback strategy."""
        return bool(self._degraded_entities)

    @property
    def entities(self) -> list[SequenceEntity]:
        return list(self._entities.values())

    def entity(self, name: str) -> SequenceEntity:
        try:
            return self._entities[name]
        except KeyError:
            raise SequenceAllocationError(name, "unknown sequence entity") from None

    async def initialize(self, names: list[str] | None = None) -> dict[str, int]:
        """
        Raise each counter to the current maximum id in the target store.

        Counters are only ever raised, so calling this again after ids have
        been issued is harmless.

        Args:
            names: Entities to bootstrap (all registered entities if None)

        Returns:
            Mapping of entity name to counter value after bootstrap

        Raises:
            StoreConnectionError: If the target store is unreachable
        """
        selected = [self.entity(name) for name in names] if names else self.entities
        values: dict[str, int] = {}
        for entity in selected:
            with self._tracer.span(
                "storemigrate.sequences.initialize",
                {ATTR_SEQUENCE_ENTITY: entity.name},
            ):
                highest = await self._store.max_value(entity.collection, entity.id_field)
                value = await self._primary.raise_to(entity.name, int(highest or 0))
            self._observe(entity.name, value)
            values[entity.name] = value
            logger.info("Counter %s initialized to %d", counter_key(entity.name), value)
        return values

    def _observe(self, entity: str, value: int) -> None:
        self._last_seen[entity] = max(self._last_seen.get(entity, 0), value)
        self._fallback.seed(entity, value)

    async def next_id(self, entity: str) -> int:
        """
        Allocate the next id for an entity.

        Args:
            entity: Counter name (e.g., 'order_product')

        Returns:
            The new id
        """
        with self._tracer.span("storemigrate.sequences.next_id", {ATTR_SEQUENCE_ENTITY: entity}):
            try:
                if entity in self._unsynced:
                    await self._primary.raise_to(entity, self._unsynced[entity])
                    del self._unsynced[entity]
                value = await self._primary.next(entity)
            except (StoreConnectionError, TargetWriteError) as e:
                value = self._fallback.next(entity)
                self._unsynced[entity] = value
                if entity not in self._degraded_entities:
                    logger.warning(
                        "Atomic counter for %s unavailable (%s); issuing ids from "
                        "the in-process cache starting at %d",
                        entity,
                        e,
                        value,
                    )
                self._degraded_entities.add(entity)
                return value
        self._observe(entity, value)
        return value

    async def reserve(self, entity: str, count: int) -> list[int]:
        """
        Atomically reserve a contiguous block of ids.

        Args:
            entity: Counter name
            count: Number of ids

        Returns:
            The reserved ids in ascending order

        Raises:
            ValueError: If count is not positive
            SequenceAllocationError: If the counter store is unavailable
        """
        if count < 1:
            raise ValueError(f"count must be positive, got {count}")
        try:
            ids = await self._primary.reserve(entity, count)
        except (StoreConnectionError, TargetWriteError) as e:
            raise SequenceAllocationError(entity, str(e)) from e
        self._observe(entity, ids[-1])
        return ids

    async def reset(self, entity: str, value: int = 0) -> None:
        """
        Overwrite a counter value.

        This can make the allocator issue ids that already exist; it is an
        operator tool.
        """
        if value < 0:
            raise ValueError(f"value must be >= 0, got {value}")
        await self._store.set_value(COUNTER_COLLECTION, counter_key(entity), SEQUENCE_FIELD, value)
        self._last_seen[entity] = value
        logger.warning("Counter %s reset to %d", counter_key(entity), value)

    async def snapshot(self) -> dict[str, dict[str, Any]]:
        """
        Report every stored counter.

        Returns:
            Mapping of entity name to ``{"current": n, "next": n + 1}``
        """
        report: dict[str, dict[str, Any]] = {}
        for doc in await self._store.find(COUNTER_COLLECTION, sort="_id"):
            key = str(doc["_id"])
            name = key[: -len("_id")] if key.endswith("_id") else key
            current = int(doc.get(SEQUENCE_FIELD, 0))
            report[name] = {"current": current, "next": current + 1}
        return report


__all__ = [
    "COUNTER_COLLECTION",
    "SEQUENCE_FIELD",
    "DEFAULT_SEQUENCE_ENTITIES",
    "AtomicCounterStrategy",
    "DegradedCacheStrategy",
    "SequenceAllocator",
    "SequenceEntity",
    "counter_key",
]
