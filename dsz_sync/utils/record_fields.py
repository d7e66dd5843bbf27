"""
Record fields — ordered fallback lookups over supplier product records.

Supplier records name the same attribute differently depending on the
endpoint and the product's age (title / name / product_name, ...). Each
attribute has an explicit ordered field list; first_value() returns the
first non-empty match.
Version: 1.0.0
"""
from typing import Any, Dict, List, Optional, Sequence

from dsz_sync.utils.type_converters import to_float

TITLE_FIELDS = ("title", "name", "product_name")
DESCRIPTION_FIELDS = ("description", "desc", "long_description")
SHORT_DESCRIPTION_FIELDS = ("short_description", "short_desc")
COST_FIELDS = ("price", "cost")
SPECIAL_PRICE_FIELDS = ("special_price",)
STOCK_FIELDS = ("stock_qty", "stock", "qty")
IMAGE_LIST_FIELDS = ("gallery", "images")
PRIMARY_IMAGE_FIELDS = ("image", "image_url", "thumbnail")
CATEGORY_PATH_FIELDS = ("Category", "category", "category_path")
CATEGORY_LEVEL_FIELDS = ("l1_category_name", "l2_category_name", "l3_category_name")
DIMENSION_FIELDS = ("weight", "length", "width", "height")

CATEGORY_DELIMITER = " > "
TRUTHY_FLAGS = ("1", "true", "yes", "y")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def first_value(record: Dict[str, Any], fields: Sequence[str], default: Any = None) -> Any:
    """Return the first non-empty value among fields, in order."""
    for field in fields:
        value = record.get(field)
        if not _is_empty(value):
            return value
    return default


def get_sku(record: Dict[str, Any]) -> str:
    return str(record.get("sku") or "").strip()


def image_urls(record: Dict[str, Any]) -> List[str]:
    """
    Image URLs in display order, de-duplicated.

    Gallery entries may be plain strings or {"url": ...} / {"src": ...}
    dicts. A standalone primary-image field, when present, comes first.
    """
    urls: List[str] = []

    primary = first_value(record, PRIMARY_IMAGE_FIELDS)
    if isinstance(primary, str) and primary.strip():
        urls.append(primary.strip())

    gallery = first_value(record, IMAGE_LIST_FIELDS, [])
    if isinstance(gallery, (str, dict)):
        gallery = [gallery]

    for item in gallery:
        if isinstance(item, dict):
            item = item.get("url") or item.get("src")
        if isinstance(item, str) and item.strip() and item.strip() not in urls:
            urls.append(item.strip())

    return urls


def category_path(record: Dict[str, Any]) -> Optional[str]:
    """Delimited category path, from Category or the l1/l2/l3 level names."""
    path = first_value(record, CATEGORY_PATH_FIELDS)
    if isinstance(path, str) and path.strip():
        return path.strip()

    levels = [str(record[f]).strip() for f in CATEGORY_LEVEL_FIELDS if not _is_empty(record.get(f))]
    if levels:
        return CATEGORY_DELIMITER.join(levels)
    return None


def dimensions(record: Dict[str, Any]) -> Dict[str, float]:
    """Physical dimensions present on the record, as floats."""
    result = {}
    for field in DIMENSION_FIELDS:
        value = to_float(record.get(field))
        if value is not None and value > 0:
            result[field] = value
    return result


def is_truthy_flag(value: Any) -> bool:
    """Interpret the supplier's mixed boolean encodings ("1", 1, True, "yes")."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_FLAGS
    return False
