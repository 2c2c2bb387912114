"""
Product transformer.

A product aggregate embeds rows from nine related tables. The related reads
for one product are issued concurrently.

Product option and option value ids are renumbered per product
(1, 2, 3, ...), because the source ids are only unique inside the legacy
tables. The source ids are kept as ``original_product_option_id`` and
``original_product_option_value_id``.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

from storemigrate.documents import (
    Product,
    ProductAttribute,
    ProductDescription,
    ProductDiscount,
    ProductImage,
    ProductOption,
    ProductOptionValue,
    ProductSpecial,
)
from storemigrate.sources.base import Row, SourceStore
from storemigrate.transformers.base import EmbeddedChildren, IndexSpec, Transformer
from storemigrate.transformers.normalize import (
    as_bool,
    as_datetime,
    as_float,
    as_int,
    as_str,
    first_non_empty,
)

DEFAULT_LANGUAGE_ID = 1

DESCRIPTIONS_SQL = """
    SELECT * FROM oc_product_description
    WHERE product_id = :product_id
    ORDER BY language_id
"""

CATEGORIES_SQL = """
    SELECT category_id FROM oc_product_to_category
    WHERE product_id = :product_id
    ORDER BY category_id
"""

IMAGES_SQL = """
    SELECT * FROM oc_product_image
    WHERE product_id = :product_id
    ORDER BY sort_order, product_image_id
"""

OPTIONS_SQL = """
    SELECT po.product_option_id, po.option_id, po.value AS option_value, po.required,
           od.name AS option_name, o.type AS option_type, o.sort_order AS option_sort_order
    FROM oc_product_option po
    LEFT JOIN oc_option o ON po.option_id = o.option_id
    LEFT JOIN oc_option_description od
        ON po.option_id = od.option_id AND od.language_id = :language_id
    WHERE po.product_id = :product_id
    ORDER BY po.product_option_id
"""

OPTION_VALUES_SQL = """
    SELECT pov.*, ovd.name AS value_name
    FROM oc_product_option_value pov
    LEFT JOIN oc_option_value_description ovd
        ON pov.option_value_id = ovd.option_value_id AND ovd.language_id = :language_id
    WHERE pov.product_id = :product_id
    ORDER BY pov.product_option_value_id
"""

ATTRIBUTES_SQL = """
    SELECT pa.attribute_id, pa.language_id, pa.text,
           ad.name AS attribute_name, a.attribute_group_id
    FROM oc_product_attribute pa
    LEFT JOIN oc_attribute_description ad
        ON pa.attribute_id = ad.attribute_id AND ad.language_id = pa.language_id
    LEFT JOIN oc_attribute a ON pa.attribute_id = a.attribute_id
    WHERE pa.product_id = :product_id
    ORDER BY pa.attribute_id, pa.language_id
"""

RELATED_SQL = """
    SELECT related_id FROM oc_product_related
    WHERE product_id = :product_id
    ORDER BY related_id
"""

SPECIALS_SQL = """
    SELECT * FROM oc_product_special
    WHERE product_id = :product_id
    ORDER BY priority, date_start, product_special_id
"""

DISCOUNTS_SQL = """
    SELECT * FROM oc_product_discount
    WHERE product_id = :product_id
    ORDER BY quantity, product_discount_id
"""

DOWNLOADS_SQL = """
    SELECT download_id FROM oc_product_to_download
    WHERE product_id = :product_id
    ORDER BY download_id
"""

STORES_SQL = """
    SELECT store_id FROM oc_product_to_store
    WHERE product_id = :product_id
    ORDER BY store_id
"""


class ProductTransformer(Transformer[Product]):
    """
    Products with descriptions, categories, images, attributes, options
    (with values), specials, discounts, downloads, related products and
    stores embedded.
    """

    name = "products"
    label = "Product"
    source_table = "oc_product"
    id_column = "product_id"
    collection = "products"
    aggregate_model = Product
    related_tables = (
        "oc_product_description",
        "oc_product_to_category",
        "oc_product_image",
        "oc_product_option",
        "oc_product_option_value",
        "oc_option",
        "oc_option_description",
        "oc_option_value_description",
        "oc_product_attribute",
        "oc_attribute",
        "oc_attribute_description",
        "oc_product_related",
        "oc_product_special",
        "oc_product_discount",
        "oc_product_to_download",
        "oc_product_to_store",
    )
    children = (
        EmbeddedChildren(
            "Product description", "descriptions", "oc_product_description", "product_id"
        ),
        EmbeddedChildren("Product option", "options", "oc_product_option", "product_id"),
    )
    indexes = (
        IndexSpec(("product_id",), unique=True),
        IndexSpec(("model",)),
        IndexSpec(("sku",)),
        IndexSpec(("manufacturer_id",)),
        IndexSpec(("price",)),
        IndexSpec(("status",)),
        IndexSpec(("date_added",)),
    )
    sequence = "product"

    def required_columns(self) -> dict[str, set[str]]:
        columns = super().required_columns()
        columns.setdefault("oc_product_option_value", set()).update(
            {"product_id", "product_option_id", "option_value_id"}
        )
        return columns

    async def transform(self, row: Row, source: SourceStore) -> Product:
        product_id = as_int(row["product_id"])
        params = {"product_id": product_id}
        language = {**params, "language_id": DEFAULT_LANGUAGE_ID}

        (
            descriptions,
            categories,
            images,
            options,
            values,
            attributes,
            related,
            specials,
            discounts,
            downloads,
            stores,
        ) = await asyncio.gather(
            source.fetch_all(DESCRIPTIONS_SQL, params),
            source.fetch_all(CATEGORIES_SQL, params),
            source.fetch_all(IMAGES_SQL, params),
            source.fetch_all(OPTIONS_SQL, language),
            source.fetch_all(OPTION_VALUES_SQL, language),
            source.fetch_all(ATTRIBUTES_SQL, params),
            source.fetch_all(RELATED_SQL, params),
            source.fetch_all(SPECIALS_SQL, params),
            source.fetch_all(DISCOUNTS_SQL, params),
            source.fetch_all(DOWNLOADS_SQL, params),
            source.fetch_all(STORES_SQL, params),
        )

        return Product(
            product_id=product_id,
            model=as_str(row.get("model")),
            sku=as_str(row.get("sku")),
            upc=as_str(row.get("upc")),
            ean=as_str(row.get("ean")),
            jan=as_str(row.get("jan")),
            isbn=as_str(row.get("isbn")),
            mpn=as_str(row.get("mpn")),
            location=as_str(row.get("location")),
            quantity=as_int(row.get("quantity")),
            stock_status_id=as_int(row.get("stock_status_id")),
            image=as_str(row.get("image")),
            manufacturer_id=as_int(row.get("manufacturer_id")),
            shipping=as_bool(row.get("shipping")),
            price=as_float(row.get("price")),
            points=as_int(row.get("points")),
            tax_class_id=as_int(row.get("tax_class_id")),
            date_available=as_datetime(row.get("date_available")),
            weight=as_float(row.get("weight")),
            weight_class_id=as_int(row.get("weight_class_id")),
            length=as_float(row.get("length")),
            width=as_float(row.get("width")),
            height=as_float(row.get("height")),
            length_class_id=as_int(row.get("length_class_id")),
            subtract=as_bool(row.get("subtract")),
            minimum=as_int(row.get("minimum"), default=1),
            sort_order=as_int(row.get("sort_order")),
            status=as_bool(row.get("status")),
            viewed=as_int(row.get("viewed")),
            date_added=as_datetime(row.get("date_added")),
            date_modified=as_datetime(row.get("date_modified")),
            descriptions=[
                ProductDescription(
                    language_id=as_int(desc.get("language_id"), default=DEFAULT_LANGUAGE_ID),
                    name=as_str(desc.get("name")),
                    description=as_str(desc.get("description")),
                    tag=as_str(desc.get("tag")),
                    meta_title=as_str(desc.get("meta_title")),
                    meta_description=as_str(desc.get("meta_description")),
                    meta_keyword=as_str(desc.get("meta_keyword")),
                )
                for desc in descriptions
            ],
            categories=[as_int(cat["category_id"]) for cat in categories],
            additional_images=[
                ProductImage(
                    product_image_id=as_int(img.get("product_image_id")),
                    image=as_str(img.get("image")),
                    sort_order=as_int(img.get("sort_order")),
                )
                for img in images
            ],
            attributes=[
                ProductAttribute(
                    attribute_id=as_int(attr.get("attribute_id")),
                    attribute_group_id=as_int(attr.get("attribute_group_id")),
                    language_id=as_int(attr.get("language_id"), default=DEFAULT_LANGUAGE_ID),
                    name=first_non_empty(attr.get("attribute_name"), default="Unknown Attribute"),
                    text=as_str(attr.get("text")),
                )
                for attr in attributes
            ],
            options=build_options(options, values),
            special_prices=[
                ProductSpecial(
                    product_special_id=as_int(special.get("product_special_id")),
                    customer_group_id=as_int(special.get("customer_group_id")),
                    priority=as_int(special.get("priority")),
                    price=as_float(special.get("price")),
                    date_start=as_datetime(special.get("date_start")),
                    date_end=as_datetime(special.get("date_end")),
                )
                for special in specials
            ],
            discounts=[
                ProductDiscount(
                    product_discount_id=as_int(discount.get("product_discount_id")),
                    customer_group_id=as_int(discount.get("customer_group_id")),
                    quantity=as_int(discount.get("quantity")),
                    priority=as_int(discount.get("priority")),
                    price=as_float(discount.get("price")),
                    date_start=as_datetime(discount.get("date_start")),
                    date_end=as_datetime(discount.get("date_end")),
                )
                for discount in discounts
            ],
            downloads=[as_int(dl["download_id"]) for dl in downloads],
            related_products=[as_int(rel["related_id"]) for rel in related],
            stores=[as_int(store["store_id"]) for store in stores] or [0],
        )


def build_options(options: list[Row], values: list[Row]) -> list[ProductOption]:
    """
    Nest option values under their options and renumber both.

    Option ids run 1..n in source order; value ids run 1..m across the
    whole product, so both are unique inside the product document.
    """
    values_by_option: dict[int, list[Row]] = defaultdict(list)
    for value in values:
        values_by_option[as_int(value.get("product_option_id"))].append(value)

    built: list[ProductOption] = []
    next_value_id = 1
    for position, option in enumerate(options, start=1):
        source_option_id = as_int(option.get("product_option_id"))
        option_values = []
        for value in values_by_option.get(source_option_id, []):
            option_values.append(
                ProductOptionValue(
                    product_option_value_id=next_value_id,
                    original_product_option_value_id=as_int(value.get("product_option_value_id")),
                    option_value_id=as_int(value.get("option_value_id")),
                    name=first_non_empty(value.get("value_name"), default="Unknown Value"),
                    quantity=as_int(value.get("quantity")),
                    subtract=as_bool(value.get("subtract")),
                    price=as_float(value.get("price")),
                    price_prefix=first_non_empty(value.get("price_prefix"), default="+"),
                    points=as_int(value.get("points")),
                    points_prefix=first_non_empty(value.get("points_prefix"), default="+"),
                    weight=as_float(value.get("weight")),
                    weight_prefix=first_non_empty(value.get("weight_prefix"), default="+"),
                    uploaded_file=as_str(value.get("uploaded_files")),
                )
            )
            next_value_id += 1

        built.append(
            ProductOption(
                product_option_id=position,
                original_product_option_id=source_option_id,
                option_id=as_int(option.get("option_id")),
                name=first_non_empty(option.get("option_name"), default="Unknown Option"),
                type=first_non_empty(option.get("option_type"), default="select"),
                value=as_str(option.get("option_value")),
                required=as_bool(option.get("required")),
                sort_order=as_int(option.get("option_sort_order")),
                values=option_values,
            )
        )
    return built
