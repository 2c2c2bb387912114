"""
Phase catalogue.

Phases run strictly in registration order because later phases embed or
reference ids created by earlier ones (products reference manufacturers and
categories, orders reference products).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from storemigrate.exceptions import UnknownPhaseError
from storemigrate.transformers import (
    ORDER_PRODUCT_SEQUENCE,
    ORDER_PRODUCTS_COLLECTION,
    AdminTransformer,
    CategoryTransformer,
    CountryTransformer,
    CustomerTransformer,
    LanguageTransformer,
    ManufacturerTransformer,
    OrderTransformer,
    ProductTransformer,
    Transformer,
    ZoneTransformer,
)
from storemigrate.verification import CountCheck, child_count_sql

ALL = "all"


@dataclass(frozen=True)
class PhaseDefinition:
    """
    One migration phase.

    Attributes:
        key: CLI name (e.g., 'phase4')
        status_name: Name of the phase's status record
        title: Human readable description
        transformers: Transformer classes, run in order
        extra_checks: Checks run after the per-entity checks
        extra_sequences: Counters re-bootstrapped besides the entities' own
    """

    key: str
    status_name: str
    title: str
    transformers: tuple[type[Transformer], ...]
    extra_checks: tuple[CountCheck, ...] = ()
    extra_sequences: tuple[str, ...] = ()

    @property
    def collections(self) -> list[str]:
        """Primary target collections, consulted by the skip rule."""
        return [transformer.collection for transformer in self.transformers]

    @property
    def target_collections(self) -> list[str]:
        """Every collection the phase writes, companion collections included."""
        names = self.collections
        for check in self.extra_checks:
            if check.target_collection not in names:
                names.append(check.target_collection)
        return names

    @property
    def tables_migrated(self) -> list[str]:
        tables: list[str] = []
        for transformer in self.transformers:
            for table in (transformer.source_table, *transformer.related_tables):
                if table not in tables:
                    tables.append(table)
        return tables

    @property
    def sequences(self) -> list[str]:
        names = [t.sequence for t in self.transformers if t.sequence]
        return names + [name for name in self.extra_sequences if name not in names]


class PhaseRegistry:
    """
    Ordered lookup of phases by key.

    Example:
        >>> registry = PhaseRegistry(DEFAULT_PHASES)
        >>> registry.get("phase4").status_name
        'phase4_user_management'
        >>> registry.resolve("all")
        [<phase1>, <phase4>, <phase5>, <phase6>, <phase7>]
    """

    def __init__(self, phases: Sequence[PhaseDefinition]) -> None:
        self._phases: dict[str, PhaseDefinition] = {}
        for phase in phases:
            if phase.key in self._phases or phase.key == ALL:
                raise ValueError(f"Duplicate or reserved phase key: {phase.key!r}")
            self._phases[phase.key] = phase

    def __iter__(self):
        return iter(self._phases.values())

    def __len__(self) -> int:
        return len(self._phases)

    def __contains__(self, key: object) -> bool:
        return key in self._phases

    @property
    def keys(self) -> list[str]:
        return list(self._phases)

    @property
    def status_names(self) -> list[str]:
        return [phase.status_name for phase in self._phases.values()]

    def get(self, key: str) -> PhaseDefinition:
        """
        Look up a phase by its key or status name.

        Raises:
            UnknownPhaseError: If no phase matches
        """
        if key in self._phases:
            return self._phases[key]
        for phase in self._phases.values():
            if phase.status_name == key:
                return phase
        raise UnknownPhaseError(key, [*self._phases, ALL])

    def resolve(self, key: str) -> list[PhaseDefinition]:
        """Expand ``all`` to every phase in order; otherwise a single phase."""
        if key == ALL:
            return list(self._phases.values())
        return [self.get(key)]

    def collections(self) -> list[str]:
        """Every collection written by any phase, companions included."""
        names: list[str] = []
        for phase in self._phases.values():
            for collection in phase.target_collections:
                if collection not in names:
                    names.append(collection)
        return names


PHASE1 = PhaseDefinition(
    key="phase1",
    status_name="phase1_core_independent",
    title="Core independent lookups",
    transformers=(CountryTransformer, ZoneTransformer, LanguageTransformer),
)

PHASE4 = PhaseDefinition(
    key="phase4",
    status_name="phase4_user_management",
    title="Administrators and customers",
    transformers=(AdminTransformer, CustomerTransformer),
)

PHASE5 = PhaseDefinition(
    key="phase5",
    status_name="phase5_catalog_structure",
    title="Manufacturers and category tree",
    transformers=(ManufacturerTransformer, CategoryTransformer),
)

PHASE6 = PhaseDefinition(
    key="phase6",
    status_name="phase6_products",
    title="Products",
    transformers=(ProductTransformer,),
)

PHASE7 = PhaseDefinition(
    key="phase7",
    status_name="phase7_orders",
    title="Orders",
    transformers=(OrderTransformer,),
    extra_checks=(
        CountCheck(
            entity=OrderTransformer.name,
            check="Order product record count",
            source_sql=child_count_sql("oc_order_product", "order_id", "oc_order", "order_id"),
            target_collection=ORDER_PRODUCTS_COLLECTION,
        ),
    ),
    extra_sequences=(ORDER_PRODUCT_SEQUENCE,),
)

DEFAULT_PHASES: tuple[PhaseDefinition, ...] = (PHASE1, PHASE4, PHASE5, PHASE6, PHASE7)


def default_registry() -> PhaseRegistry:
    return PhaseRegistry(DEFAULT_PHASES)


def get_phase(key: str) -> PhaseDefinition:
    """Look up one of the default phases by key or status name."""
    return default_registry().get(key)


__all__ = [
    "ALL",
    "DEFAULT_PHASES",
    "PHASE1",
    "PHASE4",
    "PHASE5",
    "PHASE6",
    "PHASE7",
    "PhaseDefinition",
    "PhaseRegistry",
    "default_registry",
    "get_phase",
]
