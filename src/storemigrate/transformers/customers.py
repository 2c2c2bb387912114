"""
Customer transformer: customers with their addresses embedded.
"""

from __future__ import annotations

from storemigrate.documents import Address, Customer
from storemigrate.sources.base import Row, SourceStore
from storemigrate.transformers.base import EmbeddedChildren, IndexSpec, Transformer
from storemigrate.transformers.normalize import (
    as_bool,
    as_datetime,
    as_id_list,
    as_int,
    as_opaque,
    as_str,
)

ADDRESSES_SQL = """
    SELECT * FROM oc_address
    WHERE customer_id = :customer_id
    ORDER BY address_id
"""


def build_address(row: Row) -> Address:
    return Address(
        address_id=as_int(row["address_id"]),
        firstname=as_str(row.get("firstname")),
        lastname=as_str(row.get("lastname")),
        company=as_str(row.get("company")),
        address_1=as_str(row.get("address_1")),
        address_2=as_str(row.get("address_2")),
        city=as_str(row.get("city")),
        postcode=as_str(row.get("postcode")),
        country_id=as_int(row.get("country_id")),
        zone_id=as_int(row.get("zone_id")),
        custom_field=as_opaque(row.get("custom_field")),
    )


class CustomerTransformer(Transformer[Customer]):
    """
    Embeds every ``oc_address`` row of a customer, in address_id order.

    The legacy comma-separated ``wishlist`` column becomes a list of
    product ids.
    """

    name = "customers"
    label = "Customer"
    source_table = "oc_customer"
    id_column = "customer_id"
    collection = "customers"
    aggregate_model = Customer
    related_tables = ("oc_address",)
    children = (EmbeddedChildren("Address", "addresses", "oc_address", "customer_id"),)
    indexes = (
        IndexSpec(("customer_id",), unique=True),
        IndexSpec(("email",)),
        IndexSpec(("telephone",)),
    )
    sequence = "customer"

    async def transform(self, row: Row, source: SourceStore) -> Customer:
        customer_id = as_int(row["customer_id"])
        address_rows = await source.fetch_all(ADDRESSES_SQL, {"customer_id": customer_id})

        return Customer(
            customer_id=customer_id,
            customer_group_id=as_int(row.get("customer_group_id")),
            store_id=as_int(row.get("store_id")),
            language_id=as_int(row.get("language_id"), default=1),
            firstname=as_str(row.get("firstname")),
            lastname=as_str(row.get("lastname")),
            email=as_str(row.get("email")),
            telephone=as_str(row.get("telephone")),
            fax=as_str(row.get("fax")),
            password=as_str(row.get("password")),
            salt=as_str(row.get("salt")),
            cart=as_str(row.get("cart")),
            wishlist=as_id_list(row.get("wishlist")),
            newsletter=as_bool(row.get("newsletter")),
            address_id=as_int(row.get("address_id")),
            custom_field=as_opaque(row.get("custom_field")),
            ip=as_str(row.get("ip")),
            status=as_bool(row.get("status")),
            safe=as_bool(row.get("safe")),
            token=as_str(row.get("token")),
            code=as_str(row.get("code")),
            date_added=as_datetime(row.get("date_added")),
            addresses=[build_address(address) for address in address_rows],
        )
