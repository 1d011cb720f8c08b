"""
Product and variant repository.

Browse, search and edit the catalog through the record store.
"""

from typing import Any, Dict, Mapping, Optional
import logging

from .validation import (
    ValidationError,
    build_create_payload,
    build_update_payload,
    build_variant_payload,
    build_variant_update_payload,
)
from ..storage.record_store import QueryPage, RecordNotFoundError, RecordStore

PRODUCT_LIST_COLUMNS = (
    "id, title, handle, sku_label, vendor, product_type, status, "
    "shopify_status, tags, last_synced_at, variants:product_variants(count)"
)
PRODUCT_SEARCH_COLUMNS = ("title", "sku_label", "handle")


class ProductRepository:
    """Catalog operations over ``products`` and ``product_variants``."""

    def __init__(self, record_store: RecordStore, logger: Optional[logging.Logger] = None):
        self.record_store = record_store
        self.logger = logger or logging.getLogger(__name__)

    def list_products(self, page: int = 1, page_size: int = 20, search: str = "") -> QueryPage:
        """
        List products ordered by title.

        Args:
            page: One-based page number
            page_size: Products per page
            search: Case-insensitive match on title, SKU label or handle

        Returns:
            QueryPage with the page's rows and the total match count
        """
        page = max(1, page)
        page_size = max(1, page_size)

        result = self.record_store.search(
            "products",
            PRODUCT_LIST_COLUMNS,
            PRODUCT_SEARCH_COLUMNS,
            term=search,
            order_by="title",
            offset=(page - 1) * page_size,
            limit=page_size
        )
        result.extra = {"page": page, "page_size": page_size}
        return result

    def get_product(self, product_id: str) -> Dict[str, Any]:
        product = self.record_store.select_one("products", {"id": product_id})
        if not product:
            raise RecordNotFoundError(f"Product not found: {product_id}")

        product["variants"] = self.record_store.select(
            "product_variants",
            {"product_id": product_id},
            order_by="position"
        )
        return product

    def create_product(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        product = self.record_store.insert("products", build_create_payload(data))
        self.logger.info(f"Created product {product.get('id')} ({product.get('title')})")
        return product

    def update_product(self, product_id: str, data: Any) -> Dict[str, Any]:
        """
        Apply a partial update to a product.

        Raises:
            ValidationError: The body is not a mapping or holds no fields
            RecordNotFoundError: No product has this ID
        """
        payload = build_update_payload(data)
        if not payload:
            raise ValidationError("No fields to update")

        rows = self.record_store.update("products", {"id": product_id}, payload)
        if not rows:
            raise RecordNotFoundError(f"Product not found: {product_id}")
        return rows[0]

    def create_variant(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        return self.record_store.insert("product_variants", build_variant_payload(data))

    def update_variant(self, variant_id: str, data: Any) -> Dict[str, Any]:
        payload = build_variant_update_payload(data)
        if not payload:
            raise ValidationError("No fields to update")

        rows = self.record_store.update("product_variants", {"id": variant_id}, payload)
        if not rows:
            raise RecordNotFoundError(f"Variant not found: {variant_id}")
        return rows[0]

    def delete_variant(self, variant_id: str) -> None:
        self.record_store.delete("product_variants", {"id": variant_id})
