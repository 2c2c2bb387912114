"""
Order transformer.

Orders embed their products (each with its options), totals and status
history. Every embedded order product receives a fresh id from the
``order_product`` counter, and is also written to the ``order_products``
collection together with its parent ``order_id``.

Order option ids are renumbered 1..n inside their order product; the
source ids are kept as ``original_order_option_id``.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any

from storemigrate.documents import (
    Order,
    OrderHistory,
    OrderOption,
    OrderProduct,
    OrderProductRecord,
    OrderTotal,
)
from storemigrate.exceptions import SequenceAllocationError
from storemigrate.sources.base import Row, SourceStore
from storemigrate.transformers.base import EmbeddedChildren, IndexSpec, Transformer
from storemigrate.transformers.normalize import (
    as_bool,
    as_datetime,
    as_float,
    as_int,
    as_opaque,
    as_str,
    first_non_empty,
)

ORDER_PRODUCT_SEQUENCE = "order_product"
ORDER_PRODUCTS_COLLECTION = "order_products"

PRODUCTS_SQL = """
    SELECT * FROM oc_order_product
    WHERE order_id = :order_id
    ORDER BY order_product_id
"""

OPTIONS_SQL = """
    SELECT * FROM oc_order_option
    WHERE order_id = :order_id
    ORDER BY order_option_id
"""

TOTALS_SQL = """
    SELECT * FROM oc_order_total
    WHERE order_id = :order_id
    ORDER BY sort_order, order_total_id
"""

HISTORY_SQL = """
    SELECT * FROM oc_order_history
    WHERE order_id = :order_id
    ORDER BY date_added, order_history_id
"""

_ADDRESS_FIELDS = (
    "company",
    "address_1",
    "address_2",
    "city",
    "postcode",
    "country",
    "zone",
    "address_format",
    "method",
    "code",
)


class OrderTransformer(Transformer[Order]):
    """
    Orders with products, options, totals and history embedded.

    Missing customer names default to "Guest Customer", a missing email to
    ``guest_<order_id>@example.com``; payment and shipping names fall back
    to the order's names.
    """

    name = "orders"
    label = "Order"
    source_table = "oc_order"
    id_column = "order_id"
    collection = "orders"
    aggregate_model = Order
    related_tables = (
        "oc_order_product",
        "oc_order_option",
        "oc_order_total",
        "oc_order_history",
    )
    children = (
        EmbeddedChildren("Order product", "products", "oc_order_product", "order_id"),
        EmbeddedChildren("Order total", "totals", "oc_order_total", "order_id"),
        EmbeddedChildren("Order history", "history", "oc_order_history", "order_id"),
    )
    indexes = (
        IndexSpec(("order_id",), unique=True),
        IndexSpec(("customer_id", "date_added")),
        IndexSpec(("order_status_id",)),
        IndexSpec(("date_added",)),
        IndexSpec(("email",)),
    )
    sequence = "order"

    def required_columns(self) -> dict[str, set[str]]:
        columns = super().required_columns()
        columns.setdefault("oc_order_option", set()).update({"order_id", "order_product_id"})
        return columns

    async def _allocate_order_product_id(self) -> int:
        if self._allocator is None:
            raise SequenceAllocationError(ORDER_PRODUCT_SEQUENCE, "no allocator configured")
        return await self._allocator.next_id(ORDER_PRODUCT_SEQUENCE)

    async def transform(self, row: Row, source: SourceStore) -> Order:
        order_id = as_int(row["order_id"])
        params = {"order_id": order_id}

        products, options, totals, history = await asyncio.gather(
            source.fetch_all(PRODUCTS_SQL, params),
            source.fetch_all(OPTIONS_SQL, params),
            source.fetch_all(TOTALS_SQL, params),
            source.fetch_all(HISTORY_SQL, params),
        )

        options_by_product: dict[int, list[Row]] = defaultdict(list)
        for option in options:
            options_by_product[as_int(option.get("order_product_id"))].append(option)

        embedded_products = []
        for product in products:
            source_product_id = as_int(product.get("order_product_id"))
            embedded_products.append(
                OrderProduct(
                    order_product_id=await self._allocate_order_product_id(),
                    original_order_product_id=source_product_id,
                    product_id=as_int(product.get("product_id")),
                    name=first_non_empty(product.get("name"), default="Unknown Product"),
                    model=as_str(product.get("model")),
                    quantity=as_int(product.get("quantity"), default=1),
                    price=as_float(product.get("price")),
                    total=as_float(product.get("total")),
                    tax=as_float(product.get("tax")),
                    reward=as_int(product.get("reward")),
                    options=[
                        OrderOption(
                            order_option_id=position,
                            original_order_option_id=as_int(opt.get("order_option_id")),
                            product_option_id=as_int(opt.get("product_option_id")),
                            product_option_value_id=as_int(opt.get("product_option_value_id")),
                            name=as_str(opt.get("name")),
                            value=as_str(opt.get("value")),
                            type=first_non_empty(opt.get("type"), default="text"),
                        )
                        for position, opt in enumerate(
                            options_by_product.get(source_product_id, []), start=1
                        )
                    ],
                )
            )

        firstname = first_non_empty(row.get("firstname"), default="Guest")
        lastname = first_non_empty(row.get("lastname"), default="Customer")
        party: dict[str, Any] = {}
        for prefix in ("payment", "shipping"):
            party[f"{prefix}_firstname"] = first_non_empty(
                row.get(f"{prefix}_firstname"), default=firstname
            )
            party[f"{prefix}_lastname"] = first_non_empty(
                row.get(f"{prefix}_lastname"), default=lastname
            )
            for field in _ADDRESS_FIELDS:
                key = f"{prefix}_{field}"
                if field == "method":
                    party[key] = first_non_empty(row.get(key), default="Unknown")
                else:
                    party[key] = as_str(row.get(key))
            party[f"{prefix}_country_id"] = as_int(row.get(f"{prefix}_country_id"))
            party[f"{prefix}_zone_id"] = as_int(row.get(f"{prefix}_zone_id"))
            party[f"{prefix}_custom_field"] = as_opaque(row.get(f"{prefix}_custom_field"))

        return Order(
            order_id=order_id,
            invoice_no=as_int(row.get("invoice_no")),
            invoice_prefix=as_str(row.get("invoice_prefix")),
            store_id=as_int(row.get("store_id")),
            store_name=as_str(row.get("store_name")),
            store_url=as_str(row.get("store_url")),
            customer_id=as_int(row.get("customer_id")),
            customer_group_id=as_int(row.get("customer_group_id"), default=1),
            firstname=firstname,
            lastname=lastname,
            email=first_non_empty(row.get("email"), default=f"guest_{order_id}@example.com"),
            telephone=as_str(row.get("telephone")),
            fax=as_str(row.get("fax")),
            custom_field=as_opaque(row.get("custom_field")),
            **party,
            comment=as_str(row.get("comment")),
            total=as_float(row.get("total")),
            order_status_id=as_int(row.get("order_status_id"), default=1),
            affiliate_id=as_int(row.get("affiliate_id")),
            commission=as_float(row.get("commission")),
            tracking=as_str(row.get("tracking")),
            language_id=as_int(row.get("language_id"), default=1),
            currency_id=as_int(row.get("currency_id"), default=1),
            currency_code=first_non_empty(row.get("currency_code"), default="USD"),
            currency_value=as_float(row.get("currency_value"), default=1.0) or 1.0,
            ip=as_str(row.get("ip")),
            forwarded_ip=as_str(row.get("forwarded_ip")),
            user_agent=as_str(row.get("user_agent")),
            accept_language=as_str(row.get("accept_language")),
            date_added=as_datetime(row.get("date_added")),
            date_modified=as_datetime(row.get("date_modified")),
            products=embedded_products,
            totals=[
                OrderTotal(
                    order_total_id=as_int(total.get("order_total_id")),
                    code=as_str(total.get("code")),
                    title=as_str(total.get("title")),
                    value=as_float(total.get("value")),
                    sort_order=as_int(total.get("sort_order")),
                )
                for total in totals
            ],
            history=[
                OrderHistory(
                    order_history_id=as_int(entry.get("order_history_id")),
                    order_status_id=as_int(entry.get("order_status_id")),
                    notify=as_bool(entry.get("notify")),
                    comment=as_str(entry.get("comment")),
                    date_added=as_datetime(entry.get("date_added")),
                )
                for entry in history
            ],
        )

    def companions(self, aggregate: Order) -> dict[str, list[dict[str, Any]]]:
        records = [
            OrderProductRecord(order_id=aggregate.order_id, **product.model_dump()).to_document()
            for product in aggregate.products
        ]
        return {ORDER_PRODUCTS_COLLECTION: records} if records else {}
