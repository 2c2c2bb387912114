"""Shared test fixtures and helpers."""

from tests.fixtures.opencart import (
    SCHEMA,
    address_row,
    create_schema,
    customer_rows,
    insert_rows,
    order_row,
)

__all__ = [
    "SCHEMA",
    "address_row",
    "create_schema",
    "customer_rows",
    "insert_rows",
    "order_row",
]
