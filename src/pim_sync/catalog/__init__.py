"""
Catalog helpers: payload validation and the product repository.
"""

from .validation import (
    UNSET,
    ProductUpdate,
    VariantUpdate,
    ValidationError,
    build_create_payload,
    build_update_payload,
    normalize_tags,
)
from .repository import ProductRepository

__all__ = [
    "UNSET",
    "ProductUpdate",
    "VariantUpdate",
    "ValidationError",
    "build_create_payload",
    "build_update_payload",
    "normalize_tags",
    "ProductRepository",
]
