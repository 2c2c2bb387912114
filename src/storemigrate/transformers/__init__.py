"""
Entity transformers.

Each transformer turns rows of one source table into aggregate documents.
"""

from storemigrate.transformers.base import (
    AggregateT,
    EmbeddedChildren,
    IndexSpec,
    Transformer,
)
from storemigrate.transformers.catalog import (
    CategoryCycleError,
    CategoryTransformer,
    CategoryTree,
    ManufacturerTransformer,
)
from storemigrate.transformers.customers import CustomerTransformer
from storemigrate.transformers.lookups import (
    AdminTransformer,
    CountryTransformer,
    LanguageTransformer,
    ZoneTransformer,
)
from storemigrate.transformers.orders import (
    ORDER_PRODUCT_SEQUENCE,
    ORDER_PRODUCTS_COLLECTION,
    OrderTransformer,
)
from storemigrate.transformers.products import ProductTransformer

__all__ = [
    "AggregateT",
    "EmbeddedChildren",
    "IndexSpec",
    "Transformer",
    "AdminTransformer",
    "CategoryCycleError",
    "CategoryTransformer",
    "CategoryTree",
    "CountryTransformer",
    "CustomerTransformer",
    "LanguageTransformer",
    "ManufacturerTransformer",
    "ORDER_PRODUCT_SEQUENCE",
    "ORDER_PRODUCTS_COLLECTION",
    "OrderTransformer",
    "ProductTransformer",
    "ZoneTransformer",
]
