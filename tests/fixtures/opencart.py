"""
A trimmed OpenCart schema for SQLite, plus helpers to seed it.

Only the columns the transformers read are declared; everything else in
the real schema is irrelevant to the engine.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

SCHEMA: tuple[str, ...] = (
    """CREATE TABLE oc_country (
        country_id INTEGER PRIMARY KEY, name TEXT, iso_code_2 TEXT, iso_code_3 TEXT,
        address_format TEXT, postcode_required INTEGER, status INTEGER)""",
    """CREATE TABLE oc_zone (
        zone_id INTEGER PRIMARY KEY, country_id INTEGER, name TEXT, code TEXT, status INTEGER)""",
    """CREATE TABLE oc_language (
        language_id INTEGER PRIMARY KEY, name TEXT, code TEXT, locale TEXT, image TEXT,
        directory TEXT, sort_order INTEGER, status INTEGER)""",
    """CREATE TABLE oc_user (
        user_id INTEGER PRIMARY KEY, user_group_id INTEGER, username TEXT, password TEXT,
        salt TEXT, firstname TEXT, lastname TEXT, email TEXT, image TEXT, code TEXT,
        ip TEXT, status INTEGER, date_added TEXT)""",
    """CREATE TABLE oc_customer (
        customer_id INTEGER PRIMARY KEY, customer_group_id INTEGER, store_id INTEGER,
        language_id INTEGER, firstname TEXT, lastname TEXT, email TEXT, telephone TEXT,
        fax TEXT, password TEXT, salt TEXT, cart TEXT, wishlist TEXT, newsletter INTEGER,
        address_id INTEGER, custom_field TEXT, ip TEXT, status INTEGER, safe INTEGER,
        token TEXT, code TEXT, date_added TEXT)""",
    """CREATE TABLE oc_address (
        address_id INTEGER PRIMARY KEY, customer_id INTEGER, firstname TEXT, lastname TEXT,
        company TEXT, address_1 TEXT, address_2 TEXT, city TEXT, postcode TEXT,
        country_id INTEGER, zone_id INTEGER, custom_field TEXT)""",
    """CREATE TABLE oc_manufacturer (
        manufacturer_id INTEGER PRIMARY KEY, name TEXT, image TEXT, sort_order INTEGER)""",
    """CREATE TABLE oc_category (
        category_id INTEGER PRIMARY KEY, parent_id INTEGER, image TEXT, top INTEGER,
        "column" INTEGER, sort_order INTEGER, status INTEGER, date_added TEXT,
        date_modified TEXT)""",
    """CREATE TABLE oc_category_description (
        category_id INTEGER, language_id INTEGER, name TEXT, description TEXT,
        meta_title TEXT, meta_description TEXT, meta_keyword TEXT,
        PRIMARY KEY (category_id, language_id))""",
    """CREATE TABLE oc_product (
        product_id INTEGER PRIMARY KEY, model TEXT, sku TEXT, upc TEXT, ean TEXT, jan TEXT,
        isbn TEXT, mpn TEXT, location TEXT, quantity INTEGER, stock_status_id INTEGER,
        image TEXT, manufacturer_id INTEGER, shipping INTEGER, price NUMERIC,
        points INTEGER, tax_class_id INTEGER, date_available TEXT, weight NUMERIC,
        weight_class_id INTEGER, length NUMERIC, width NUMERIC, height NUMERIC,
        length_class_id INTEGER, subtract INTEGER, minimum INTEGER, sort_order INTEGER,
        status INTEGER, viewed INTEGER, date_added TEXT, date_modified TEXT)""",
    """CREATE TABLE oc_product_description (
        product_id INTEGER, language_id INTEGER, name TEXT, description TEXT, tag TEXT,
        meta_title TEXT, meta_description TEXT, meta_keyword TEXT,
        PRIMARY KEY (product_id, language_id))""",
    """CREATE TABLE oc_product_to_category (
        product_id INTEGER, category_id INTEGER, PRIMARY KEY (product_id, category_id))""",
    """CREATE TABLE oc_product_image (
        product_image_id INTEGER PRIMARY KEY, product_id INTEGER, image TEXT,
        sort_order INTEGER)""",
    """CREATE TABLE oc_option (
        option_id INTEGER PRIMARY KEY, type TEXT, sort_order INTEGER)""",
    """CREATE TABLE oc_option_description (
        option_id INTEGER, language_id INTEGER, name TEXT,
        PRIMARY KEY (option_id, language_id))""",
    """CREATE TABLE oc_option_value_description (
        option_value_id INTEGER, language_id INTEGER, option_id INTEGER, name TEXT,
        PRIMARY KEY (option_value_id, language_id))""",
    """CREATE TABLE oc_product_option (
        product_option_id INTEGER PRIMARY KEY, product_id INTEGER, option_id INTEGER,
        value TEXT, required INTEGER)""",
    """CREATE TABLE oc_product_option_value (
        product_option_value_id INTEGER PRIMARY KEY, product_option_id INTEGER,
        product_id INTEGER, option_id INTEGER, option_value_id INTEGER, quantity INTEGER,
        subtract INTEGER, price NUMERIC, price_prefix TEXT, points INTEGER,
        points_prefix TEXT, weight NUMERIC, weight_prefix TEXT, uploaded_files TEXT)""",
    """CREATE TABLE oc_attribute (
        attribute_id INTEGER PRIMARY KEY, attribute_group_id INTEGER, sort_order INTEGER)""",
    """CREATE TABLE oc_attribute_description (
        attribute_id INTEGER, language_id INTEGER, name TEXT,
        PRIMARY KEY (attribute_id, language_id))""",
    """CREATE TABLE oc_product_attribute (
        product_id INTEGER, attribute_id INTEGER, language_id INTEGER, text TEXT,
        PRIMARY KEY (product_id, attribute_id, language_id))""",
    """CREATE TABLE oc_product_related (
        product_id INTEGER, related_id INTEGER, PRIMARY KEY (product_id, related_id))""",
    """CREATE TABLE oc_product_special (
        product_special_id INTEGER PRIMARY KEY, product_id INTEGER,
        customer_group_id INTEGER, priority INTEGER, price NUMERIC, date_start TEXT,
        date_end TEXT)""",
    """CREATE TABLE oc_product_discount (
        product_discount_id INTEGER PRIMARY KEY, product_id INTEGER,
        customer_group_id INTEGER, quantity INTEGER, priority INTEGER, price NUMERIC,
        date_start TEXT, date_end TEXT)""",
    """CREATE TABLE oc_product_to_download (
        product_id INTEGER, download_id INTEGER, PRIMARY KEY (product_id, download_id))""",
    """CREATE TABLE oc_product_to_store (
        product_id INTEGER, store_id INTEGER, PRIMARY KEY (product_id, store_id))""",
    """CREATE TABLE oc_order (
        order_id INTEGER PRIMARY KEY, invoice_no INTEGER, invoice_prefix TEXT,
        store_id INTEGER, store_name TEXT, store_url TEXT, customer_id INTEGER,
        customer_group_id INTEGER, firstname TEXT, lastname TEXT, email TEXT,
        telephone TEXT, fax TEXT, custom_field TEXT,
        payment_firstname TEXT, payment_lastname TEXT, payment_company TEXT,
        payment_address_1 TEXT, payment_address_2 TEXT, payment_city TEXT,
        payment_postcode TEXT, payment_country TEXT, payment_country_id INTEGER,
        payment_zone TEXT, payment_zone_id INTEGER, payment_address_format TEXT,
        payment_custom_field TEXT, payment_method TEXT, payment_code TEXT,
        shipping_firstname TEXT, shipping_lastname TEXT, shipping_company TEXT,
        shipping_address_1 TEXT, shipping_address_2 TEXT, shipping_city TEXT,
        shipping_postcode TEXT, shipping_country TEXT, shipping_country_id INTEGER,
        shipping_zone TEXT, shipping_zone_id INTEGER, shipping_address_format TEXT,
        shipping_custom_field TEXT, shipping_method TEXT, shipping_code TEXT,
        comment TEXT, total NUMERIC, order_status_id INTEGER, affiliate_id INTEGER,
        commission NUMERIC, tracking TEXT, language_id INTEGER, currency_id INTEGER,
        currency_code TEXT, currency_value NUMERIC, ip TEXT, forwarded_ip TEXT,
        user_agent TEXT, accept_language TEXT, date_added TEXT, date_modified TEXT)""",
    """CREATE TABLE oc_order_product (
        order_product_id INTEGER PRIMARY KEY, order_id INTEGER, product_id INTEGER,
        name TEXT, model TEXT, quantity INTEGER, price NUMERIC, total NUMERIC, tax NUMERIC,
        reward INTEGER)""",
    """CREATE TABLE oc_order_option (
        order_option_id INTEGER PRIMARY KEY, order_id INTEGER, order_product_id INTEGER,
        product_option_id INTEGER, product_option_value_id INTEGER, name TEXT,
        value TEXT, type TEXT)""",
    """CREATE TABLE oc_order_total (
        order_total_id INTEGER PRIMARY KEY, order_id INTEGER, code TEXT, title TEXT,
        value NUMERIC, sort_order INTEGER)""",
    """CREATE TABLE oc_order_history (
        order_history_id INTEGER PRIMARY KEY, order_id INTEGER, order_status_id INTEGER,
        notify INTEGER, comment TEXT, date_added TEXT)""",
)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        for statement in SCHEMA:
            await conn.execute(text(statement))


async def insert_rows(
    engine: AsyncEngine, table: str, rows: Iterable[Mapping[str, Any]]
) -> None:
    """Insert rows into a table; every row must use the same columns."""
    rows = [dict(row) for row in rows]
    if not rows:
        return
    columns = list(rows[0])
    quoted = ", ".join(f'"{name}"' for name in columns)
    placeholders = ", ".join(f":{name}" for name in columns)
    async with engine.begin() as conn:
        await conn.execute(
            text(f"INSERT INTO {table} ({quoted}) VALUES ({placeholders})"),  # nosec B608
            rows,
        )


def customer_rows(*ids: int) -> list[dict[str, Any]]:
    return [
        {
            "customer_id": customer_id,
            "firstname": f"First{customer_id}",
            "lastname": f"Last{customer_id}",
            "email": f"customer{customer_id}@example.com",
            "wishlist": "3,5",
            "newsletter": 1,
            "status": 1,
            "custom_field": "",
            "date_added": "2023-05-01 10:00:00",
        }
        for customer_id in ids
    ]


def address_row(address_id: int, customer_id: int, city: str = "Springfield") -> dict[str, Any]:
    return {
        "address_id": address_id,
        "customer_id": customer_id,
        "firstname": "Ann",
        "lastname": "Lee",
        "address_1": f"{address_id} Main St",
        "city": city,
        "country_id": 222,
        "zone_id": 3513,
        "custom_field": '{"1": "x"}',
    }


def order_row(order_id: int, **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "order_id": order_id,
        "customer_id": 7,
        "firstname": "Ann",
        "lastname": "Lee",
        "email": "ann@example.com",
        "total": "120.5000",
        "order_status_id": 5,
        "currency_code": "EUR",
        "currency_value": "1.0",
        "date_added": "2024-01-05 10:00:00",
    }
    row.update(overrides)
    return row


__all__ = [
    "SCHEMA",
    "address_row",
    "create_schema",
    "customer_rows",
    "insert_rows",
    "order_row",
]
