"""
Aggregate document models written to the target store.

Every aggregate and embedded sub-document is a pydantic model with
``extra="forbid"``, so a transformer that produces an unexpected field name
fails at construction time instead of writing a drifted document.

Aggregates:
    - Country, Zone, Language, Admin (lookup documents)
    - Customer (+ addresses)
    - Manufacturer, Category (+ descriptions, path)
    - Product (+ descriptions, options/values, attributes, images, prices)
    - Order (+ products/options, totals, history)
    - OrderProductRecord (companion document in ``order_products``)
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, RootModel

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class OpaqueDocument(RootModel[Any]):
    """
    Schema-less value carried through without interpretation.

    Used for legacy columns such as ``custom_field`` that hold JSON in some
    rows and free text in others.
    """

    @classmethod
    def parse(cls, raw: Any) -> OpaqueDocument:
        """
        Build from a raw column value.

        Empty values become ``{}``. Strings are decoded as JSON when they
        are valid JSON and kept verbatim otherwise. Anything else is kept
        as is.
        """
        if raw is None or raw == "" or raw == b"":
            return cls({})
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        if isinstance(raw, str):
            try:
                return cls(json.loads(raw))
            except ValueError:
                return cls(raw)
        return cls(raw)


class MigratedModel(BaseModel):
    """Base class for every migrated document and sub-document."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Dump to a plain dictionary ready for the target store."""
        return self.model_dump(mode="python")


class Aggregate(MigratedModel):
    """
    Base class for top-level documents.

    Subclasses set ``id_field`` to the name of the field holding the
    entity id.
    """

    id_field: ClassVar[str]

    @property
    def entity_id(self) -> Any:
        return getattr(self, self.id_field)


# =============================================================================
# Lookups
# =============================================================================


class Country(Aggregate):
    id_field: ClassVar[str] = "country_id"

    country_id: int
    name: str = ""
    iso_code_2: str = ""
    iso_code_3: str = ""
    address_format: str = ""
    postcode_required: bool = False
    status: bool = False


class Zone(Aggregate):
    id_field: ClassVar[str] = "zone_id"

    zone_id: int
    country_id: int = 0
    name: str = ""
    code: str = ""
    status: bool = False


class Language(Aggregate):
    id_field: ClassVar[str] = "language_id"

    language_id: int
    name: str = ""
    code: str = ""
    locale: str = ""
    image: str = ""
    directory: str = ""
    sort_order: int = 0
    status: bool = False


class Admin(Aggregate):
    id_field: ClassVar[str] = "user_id"

    user_id: int
    user_group_id: int = 0
    username: str = ""
    password: str = ""
    salt: str = ""
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    image: str = ""
    code: str = ""
    ip: str = ""
    status: bool = False
    date_added: datetime = EPOCH


# =============================================================================
# Customers
# =============================================================================


class Address(MigratedModel):
    address_id: int
    firstname: str = ""
    lastname: str = ""
    company: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    postcode: str = ""
    country_id: int = 0
    zone_id: int = 0
    custom_field: OpaqueDocument = Field(default_factory=lambda: OpaqueDocument({}))


class Customer(Aggregate):
    id_field: ClassVar[str] = "customer_id"

    customer_id: int
    customer_group_id: int = 0
    store_id: int = 0
    language_id: int = 1
    firstname: str = ""
    lastname: str = ""
    email: str = ""
    telephone: str = ""
    fax: str = ""
    password: str = ""
    salt: str = ""
    cart: str = ""
    wishlist: list[int] = Field(default_factory=list)
    newsletter: bool = False
    address_id: int = 0
    custom_field: OpaqueDocument = Field(default_factory=lambda: OpaqueDocument({}))
    ip: str = ""
    status: bool = False
    safe: bool = False
    token: str = ""
    code: str = ""
    date_added: datetime = EPOCH
    addresses: list[Address] = Field(default_factory=list)


# =============================================================================
# Catalog
# =============================================================================


class Manufacturer(Aggregate):
    id_field: ClassVar[str] = "manufacturer_id"

    manufacturer_id: int
    name: str = ""
    image: str = ""
    sort_order: int = 0


class CategoryDescription(MigratedModel):
    language_id: int
    name: str = ""
    description: str = ""
    meta_title: str = ""
    meta_description: str = ""
    meta_keyword: str = ""


class Category(Aggregate):
    id_field: ClassVar[str] = "category_id"

    category_id: int
    parent_id: int = 0
    image: str = ""
    top: bool = False
    column: int = 0
    sort_order: int = 0
    status: bool = False
    date_added: datetime = EPOCH
    date_modified: datetime = EPOCH
    descriptions: list[CategoryDescription] = Field(default_factory=list)
    path: list[int] = Field(default_factory=list)
    level: int = 0
    stores: list[int] = Field(default_factory=lambda: [0])


class ProductDescription(MigratedModel):
    language_id: int
    name: str = ""
    description: str = ""
    tag: str = ""
    meta_title: str = ""
    meta_description: str = ""
    meta_keyword: str = ""


class ProductImage(MigratedModel):
    product_image_id: int
    image: str = ""
    sort_order: int = 0


class ProductAttribute(MigratedModel):
    attribute_id: int
    attribute_group_id: int = 0
    language_id: int = 1
    name: str = ""
    text: str = ""


class ProductOptionValue(MigratedModel):
    product_option_value_id: int
    original_product_option_value_id: int
    option_value_id: int = 0
    name: str = ""
    quantity: int = 0
    subtract: bool = False
    price: float = 0.0
    price_prefix: str = "+"
    points: int = 0
    points_prefix: str = "+"
    weight: float = 0.0
    weight_prefix: str = "+"
    uploaded_file: str = ""


class ProductOption(MigratedModel):
    product_option_id: int
    original_product_option_id: int
    option_id: int = 0
    name: str = ""
    type: str = "select"
    value: str = ""
    required: bool = False
    sort_order: int = 0
    values: list[ProductOptionValue] = Field(default_factory=list)


class ProductSpecial(MigratedModel):
    product_special_id: int
    customer_group_id: int = 0
    priority: int = 0
    price: float = 0.0
    date_start: datetime = EPOCH
    date_end: datetime = EPOCH


class ProductDiscount(MigratedModel):
    product_discount_id: int
    customer_group_id: int = 0
    quantity: int = 0
    priority: int = 0
    price: float = 0.0
    date_start: datetime = EPOCH
    date_end: datetime = EPOCH


class Product(Aggregate):
    id_field: ClassVar[str] = "product_id"

    product_id: int
    model: str = ""
    sku: str = ""
    upc: str = ""
    ean: str = ""
    jan: str = ""
    isbn: str = ""
    mpn: str = ""
    location: str = ""
    quantity: int = 0
    stock_status_id: int = 0
    image: str = ""
    manufacturer_id: int = 0
    shipping: bool = False
    price: float = 0.0
    points: int = 0
    tax_class_id: int = 0
    date_available: datetime = EPOCH
    weight: float = 0.0
    weight_class_id: int = 0
    length: float = 0.0
    width: float = 0.0
    height: float = 0.0
    length_class_id: int = 0
    subtract: bool = False
    minimum: int = 1
    sort_order: int = 0
    status: bool = False
    viewed: int = 0
    date_added: datetime = EPOCH
    date_modified: datetime = EPOCH
    descriptions: list[ProductDescription] = Field(default_factory=list)
    categories: list[int] = Field(default_factory=list)
    additional_images: list[ProductImage] = Field(default_factory=list)
    attributes: list[ProductAttribute] = Field(default_factory=list)
    options: list[ProductOption] = Field(default_factory=list)
    special_prices: list[ProductSpecial] = Field(default_factory=list)
    discounts: list[ProductDiscount] = Field(default_factory=list)
    downloads: list[int] = Field(default_factory=list)
    related_products: list[int] = Field(default_factory=list)
    stores: list[int] = Field(default_factory=lambda: [0])


# =============================================================================
# Orders
# =============================================================================


class OrderOption(MigratedModel):
    order_option_id: int
    original_order_option_id: int
    product_option_id: int = 0
    product_option_value_id: int = 0
    name: str = ""
    value: str = ""
    type: str = "text"


class OrderProduct(MigratedModel):
    order_product_id: int
    original_order_product_id: int
    product_id: int = 0
    name: str = ""
    model: str = ""
    quantity: int = 1
    price: float = 0.0
    total: float = 0.0
    tax: float = 0.0
    reward: int = 0
    options: list[OrderOption] = Field(default_factory=list)


class OrderTotal(MigratedModel):
    order_total_id: int
    code: str = ""
    title: str = ""
    value: float = 0.0
    sort_order: int = 0


class OrderHistory(MigratedModel):
    order_history_id: int
    order_status_id: int = 0
    notify: bool = False
    comment: str = ""
    date_added: datetime = EPOCH


class Order(Aggregate):
    id_field: ClassVar[str] = "order_id"

    order_id: int
    invoice_no: int = 0
    invoice_prefix: str = ""
    store_id: int = 0
    store_name: str = ""
    store_url: str = ""
    customer_id: int = 0
    customer_group_id: int = 1
    firstname: str = "Guest"
    lastname: str = "Customer"
    email: str = ""
    telephone: str = ""
    fax: str = ""
    custom_field: OpaqueDocument = Field(default_factory=lambda: OpaqueDocument({}))

    payment_firstname: str = ""
    payment_lastname: str = ""
    payment_company: str = ""
    payment_address_1: str = ""
    payment_address_2: str = ""
    payment_city: str = ""
    payment_postcode: str = ""
    payment_country: str = ""
    payment_country_id: int = 0
    payment_zone: str = ""
    payment_zone_id: int = 0
    payment_address_format: str = ""
    payment_custom_field: OpaqueDocument = Field(default_factory=lambda: OpaqueDocument({}))
    payment_method: str = "Unknown"
    payment_code: str = ""

    shipping_firstname: str = ""
    shipping_lastname: str = ""
    shipping_company: str = ""
    shipping_address_1: str = ""
    shipping_address_2: str = ""
    shipping_city: str = ""
    shipping_postcode: str = ""
    shipping_country: str = ""
    shipping_country_id: int = 0
    shipping_zone: str = ""
    shipping_zone_id: int = 0
    shipping_address_format: str = ""
    shipping_custom_field: OpaqueDocument = Field(default_factory=lambda: OpaqueDocument({}))
    shipping_method: str = "Unknown"
    shipping_code: str = ""

    comment: str = ""
    total: float = 0.0
    order_status_id: int = 1
    affiliate_id: int = 0
    commission: float = 0.0
    tracking: str = ""
    language_id: int = 1
    currency_id: int = 1
    currency_code: str = "USD"
    currency_value: float = 1.0
    ip: str = ""
    forwarded_ip: str = ""
    user_agent: str = ""
    accept_language: str = ""
    date_added: datetime = EPOCH
    date_modified: datetime = EPOCH

    products: list[OrderProduct] = Field(default_factory=list)
    totals: list[OrderTotal] = Field(default_factory=list)
    history: list[OrderHistory] = Field(default_factory=list)


class OrderProductRecord(OrderProduct):
    """Order product stored on its own in the ``order_products`` collection."""

    order_id: int


__all__ = [
    "EPOCH",
    "OpaqueDocument",
    "MigratedModel",
    "Aggregate",
    "Country",
    "Zone",
    "Language",
    "Admin",
    "Address",
    "Customer",
    "Manufacturer",
    "CategoryDescription",
    "Category",
    "ProductDescription",
    "ProductImage",
    "ProductAttribute",
    "ProductOptionValue",
    "ProductOption",
    "ProductSpecial",
    "ProductDiscount",
    "Product",
    "OrderOption",
    "OrderProduct",
    "OrderTotal",
    "OrderHistory",
    "Order",
    "OrderProductRecord",
]
