"""
Transformers for flat lookup tables and administrators.
"""

from __future__ import annotations

from storemigrate.documents import Admin, Country, Language, Zone
from storemigrate.sources.base import Row, SourceStore
from storemigrate.transformers.base import IndexSpec, Transformer
from storemigrate.transformers.normalize import as_bool, as_datetime, as_int, as_str


class CountryTransformer(Transformer[Country]):
    name = "countries"
    label = "Country"
    source_table = "oc_country"
    id_column = "country_id"
    collection = "countries"
    aggregate_model = Country
    indexes = (IndexSpec(("country_id",), unique=True), IndexSpec(("iso_code_2",)))
    sequence = "country"

    async def transform(self, row: Row, source: SourceStore) -> Country:
        return Country(
            country_id=as_int(row["country_id"]),
            name=as_str(row.get("name")),
            iso_code_2=as_str(row.get("iso_code_2")),
            iso_code_3=as_str(row.get("iso_code_3")),
            address_format=as_str(row.get("address_format")),
            postcode_required=as_bool(row.get("postcode_required")),
            status=as_bool(row.get("status")),
        )


class ZoneTransformer(Transformer[Zone]):
    name = "zones"
    label = "Zone"
    source_table = "oc_zone"
    id_column = "zone_id"
    collection = "zones"
    aggregate_model = Zone
    indexes = (IndexSpec(("zone_id",), unique=True), IndexSpec(("country_id",)))
    sequence = "zone"

    async def transform(self, row: Row, source: SourceStore) -> Zone:
        return Zone(
            zone_id=as_int(row["zone_id"]),
            country_id=as_int(row.get("country_id")),
            name=as_str(row.get("name")),
            code=as_str(row.get("code")),
            status=as_bool(row.get("status")),
        )


class LanguageTransformer(Transformer[Language]):
    name = "languages"
    label = "Language"
    source_table = "oc_language"
    id_column = "language_id"
    collection = "languages"
    aggregate_model = Language
    indexes = (IndexSpec(("language_id",), unique=True), IndexSpec(("code",)))
    sequence = "language"

    async def transform(self, row: Row, source: SourceStore) -> Language:
        return Language(
            language_id=as_int(row["language_id"]),
            name=as_str(row.get("name")),
            code=as_str(row.get("code")),
            locale=as_str(row.get("locale")),
            image=as_str(row.get("image")),
            directory=as_str(row.get("directory")),
            sort_order=as_int(row.get("sort_order")),
            status=as_bool(row.get("status")),
        )


class AdminTransformer(Transformer[Admin]):
    name = "admins"
    label = "Admin"
    source_table = "oc_user"
    id_column = "user_id"
    collection = "admins"
    aggregate_model = Admin
    indexes = (
        IndexSpec(("user_id",), unique=True),
        IndexSpec(("username",)),
        IndexSpec(("email",)),
    )
    sequence = "admin"

    async def transform(self, row: Row, source: SourceStore) -> Admin:
        return Admin(
            user_id=as_int(row["user_id"]),
            user_group_id=as_int(row.get("user_group_id")),
            username=as_str(row.get("username")),
            password=as_str(row.get("password")),
            salt=as_str(row.get("salt")),
            firstname=as_str(row.get("firstname")),
            lastname=as_str(row.get("lastname")),
            email=as_str(row.get("email")),
            image=as_str(row.get("image")),
            code=as_str(row.get("code")),
            ip=as_str(row.get("ip")),
            status=as_bool(row.get("status")),
            date_added=as_datetime(row.get("date_added")),
        )
