"""
Catalog structure transformers: manufacturers and categories.

The category hierarchy is an adjacency list in the source (``parent_id``).
CategoryTree loads it once into an index-based arena and materializes each
category's ancestor path, root first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from storemigrate.documents import Category, CategoryDescription, Manufacturer
from storemigrate.exceptions import TransformError
from storemigrate.sources.base import Row, SourceStore
from storemigrate.transformers.base import EmbeddedChildren, IndexSpec, Transformer
from storemigrate.transformers.normalize import as_bool, as_datetime, as_int, as_str

if TYPE_CHECKING:
    from storemigrate.sequences import SequenceAllocator

logger = logging.getLogger(__name__)


class CategoryCycleError(ValueError):
    """Raised when following parent links revisits a category."""

    def __init__(self, category_id: int, cycle: list[int]) -> None:
        self.category_id = category_id
        self.cycle = cycle
        super().__init__(
            f"Category {category_id} is part of a parent cycle: "
            + " -> ".join(str(node) for node in cycle)
        )


class CategoryTree:
    """
    Arena of categories linked by parent index.

    Nodes live in flat lists; ``_parents[i]`` is the arena index of node
    i's parent, or None for roots and for categories whose parent does not
    exist in the source.

    Example:
        >>> tree = CategoryTree.from_pairs([(1, 0), (2, 1), (3, 2)])
        >>> tree.path(3)
        [1, 2, 3]
    """

    def __init__(self) -> None:
        self._ids: list[int] = []
        self._parents: list[int | None] = []
        self._index: dict[int, int] = {}
        self._paths: dict[int, list[int]] = {}

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, int]]) -> CategoryTree:
        """
        Build the arena from (category_id, parent_id) pairs.

        Args:
            pairs: Category id and parent id; parent 0 marks a root

        Returns:
            CategoryTree
        """
        tree = cls()
        parent_ids: list[int] = []
        for category_id, parent_id in pairs:
            tree._index[category_id] = len(tree._ids)
            tree._ids.append(category_id)
            parent_ids.append(parent_id)

        for parent_id in parent_ids:
            tree._parents.append(tree._index.get(parent_id) if parent_id else None)
        return tree

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._index

    def path(self, category_id: int) -> list[int]:
        """
        Ancestor ids from the root down to ``category_id`` inclusive.

        Raises:
            KeyError: If the category is not in the tree
            CategoryCycleError: If the parent chain loops
        """
        cached = self._paths.get(category_id)
        if cached is not None:
            return list(cached)

        node: int | None = self._index[category_id]
        chain: list[int] = []
        seen: set[int] = set()
        while node is not None:
            if node in seen:
                cycle = [self._ids[i] for i in chain[chain.index(node) :]] + [self._ids[node]]
                raise CategoryCycleError(category_id, cycle)
            seen.add(node)
            chain.append(node)
            node = self._parents[node]

        path = [self._ids[i] for i in reversed(chain)]
        self._paths[category_id] = path
        return list(path)

    def depth(self, category_id: int) -> int:
        return len(self.path(category_id)) - 1

    def children(self, category_id: int) -> list[int]:
        parent = self._index[category_id]
        return [self._ids[i] for i, p in enumerate(self._parents) if p == parent]


class ManufacturerTransformer(Transformer[Manufacturer]):
    name = "manufacturers"
    label = "Manufacturer"
    source_table = "oc_manufacturer"
    id_column = "manufacturer_id"
    collection = "manufacturers"
    aggregate_model = Manufacturer
    indexes = (IndexSpec(("manufacturer_id",), unique=True), IndexSpec(("name",)))
    sequence = "manufacturer"

    async def transform(self, row: Row, source: SourceStore) -> Manufacturer:
        return Manufacturer(
            manufacturer_id=as_int(row["manufacturer_id"]),
            name=as_str(row.get("name")),
            image=as_str(row.get("image")),
            sort_order=as_int(row.get("sort_order")),
        )


CATEGORY_PAIRS_SQL = "SELECT category_id, parent_id FROM oc_category ORDER BY category_id"

CATEGORY_DESCRIPTIONS_SQL = """
    SELECT * FROM oc_category_description
    WHERE category_id = :category_id
    ORDER BY language_id
"""


class CategoryTransformer(Transformer[Category]):
    """
    Categories with embedded per-language descriptions and a materialized
    ancestor path.

    A category caught in a parent cycle fails on its own; the rest of the
    batch continues.
    """

    name = "categories"
    label = "Category"
    source_table = "oc_category"
    id_column = "category_id"
    collection = "categories"
    aggregate_model = Category
    related_tables = ("oc_category_description",)
    children = (
        EmbeddedChildren(
            "Category description", "descriptions", "oc_category_description", "category_id"
        ),
    )
    indexes = (
        IndexSpec(("category_id",), unique=True),
        IndexSpec(("parent_id",)),
        IndexSpec(("path",)),
    )
    sequence = "category"

    def __init__(self, allocator: SequenceAllocator | None = None) -> None:
        super().__init__(allocator)
        self._tree = CategoryTree()

    @property
    def tree(self) -> CategoryTree:
        return self._tree

    async def prepare(self, source: SourceStore) -> None:
        rows = await source.fetch_all(CATEGORY_PAIRS_SQL)
        self._tree = CategoryTree.from_pairs(
            (as_int(row["category_id"]), as_int(row.get("parent_id"))) for row in rows
        )
        logger.info("Loaded category tree with %d nodes", len(self._tree))

    async def transform(self, row: Row, source: SourceStore) -> Category:
        category_id = as_int(row["category_id"])
        try:
            path = self._tree.path(category_id) if category_id in self._tree else [category_id]
        except CategoryCycleError as e:
            raise TransformError(self.name, category_id, str(e)) from e

        descriptions = await source.fetch_all(
            CATEGORY_DESCRIPTIONS_SQL, {"category_id": category_id}
        )
        return Category(
            category_id=category_id,
            parent_id=as_int(row.get("parent_id")),
            image=as_str(row.get("image")),
            top=as_bool(row.get("top")),
            column=as_int(row.get("column")),
            sort_order=as_int(row.get("sort_order")),
            status=as_bool(row.get("status")),
            date_added=as_datetime(row.get("date_added")),
            date_modified=as_datetime(row.get("date_modified")),
            descriptions=[
                CategoryDescription(
                    language_id=as_int(desc.get("language_id"), default=1),
                    name=as_str(desc.get("name")),
                    description=as_str(desc.get("description")),
                    meta_title=as_str(desc.get("meta_title")),
                    meta_description=as_str(desc.get("meta_description")),
                    meta_keyword=as_str(desc.get("meta_keyword")),
                )
                for desc in descriptions
            ],
            path=path,
            level=len(path) - 1,
        )
