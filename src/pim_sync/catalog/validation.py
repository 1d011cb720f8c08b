"""
Validation of product create and update payloads.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional


class ValidationError(ValueError):
    """Raised when a product payload is rejected."""
    pass


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

PRODUCT_FIELDS = (
    "title",
    "handle",
    "sku_label",
    "vendor",
    "product_type",
    "status",
    "shopify_status",
    "tags",
    "description",
    "description_html",
    "metadata",
    "shopify_product_id",
    "shopify_published_at",
)

VARIANT_FIELDS = (
    "product_id",
    "shopify_variant_id",
    "title",
    "sku",
    "price",
    "compare_at_price",
    "weight",
    "weight_unit",
    "inventory_quantity",
    "position",
    "option1",
    "option2",
    "option3",
)


def normalize_tags(tags: Any) -> List[str]:
    """
    Normalize tags to a list of non-blank strings.

    Lists keep their non-blank string entries, comma-separated strings are
    split and trimmed, anything else yields an empty list.
    """
    if not tags:
        return []
    if isinstance(tags, (list, tuple)):
        return [tag for tag in tags if isinstance(tag, str) and tag.strip()]
    if isinstance(tags, str):
        return [part.strip() for part in tags.split(",") if part.strip()]
    return []


def build_create_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build an insert payload for a new product.

    Raises:
        ValidationError: ``title`` is missing or not a string
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Invalid body")

    title = data.get("title")
    if not title or not isinstance(title, str):
        raise ValidationError("title is required")

    payload = {name: data.get(name) for name in PRODUCT_FIELDS}
    status = data.get("status")
    payload["status"] = status if status is not None else "active"
    payload["tags"] = normalize_tags(data.get("tags"))
    return payload


class _PartialUpdate:
    """Fields left as ``UNSET`` are not written; ``None`` clears the column."""

    @classmethod
    def from_mapping(cls, data: Any):
        if not isinstance(data, Mapping):
            raise ValidationError("Invalid body")
        names = [f.name for f in fields(cls)]
        return cls(**{name: data[name] for name in names if name in data})

    def to_payload(self) -> Dict[str, Any]:
        payload = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is UNSET:
                continue
            payload[f.name] = normalize_tags(value) if f.name == "tags" else value
        return payload


@dataclass
class ProductUpdate(_PartialUpdate):
    """Partial product update."""
    title: Any = UNSET
    handle: Any = UNSET
    sku_label: Any = UNSET
    vendor: Any = UNSET
    product_type: Any = UNSET
    status: Any = UNSET
    shopify_status: Any = UNSET
    tags: Any = UNSET
    description: Any = UNSET
    description_html: Any = UNSET
    metadata: Any = UNSET
    shopify_product_id: Any = UNSET
    shopify_published_at: Any = UNSET


@dataclass
class VariantUpdate(_PartialUpdate):
    """Partial variant update."""
    product_id: Any = UNSET
    shopify_variant_id: Any = UNSET
    title: Any = UNSET
    sku: Any = UNSET
    price: Any = UNSET
    compare_at_price: Any = UNSET
    weight: Any = UNSET
    weight_unit: Any = UNSET
    inventory_quantity: Any = UNSET
    position: Any = UNSET
    option1: Any = UNSET
    option2: Any = UNSET
    option3: Any = UNSET


def build_update_payload(data: Any) -> Dict[str, Any]:
    """Build an update payload holding only the keys present in ``data``."""
    return ProductUpdate.from_mapping(data).to_payload()


def build_variant_update_payload(data: Any) -> Dict[str, Any]:
    return VariantUpdate.from_mapping(data).to_payload()


def build_variant_payload(data: Any, product_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Build an insert payload for a new variant.

    Raises:
        ValidationError: ``product_id`` is missing
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Invalid body")

    payload = {name: data.get(name) for name in VARIANT_FIELDS}
    if product_id is not None:
        payload["product_id"] = product_id

    if not payload["product_id"] or not isinstance(payload["product_id"], str):
        raise ValidationError("product_id is required")

    return payload
