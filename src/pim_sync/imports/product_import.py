"""
Import of products and variants from the Shopify Admin API.

Products are matched on ``shopify_product_id`` and variants on
``shopify_variant_id``, so repeated imports update rows in place.
"""

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
import logging

from .pipeline import DEFAULT_MAX_ERRORS, ImportPipeline, ImportRunReport, ItemOutcome
from ..storage.record_store import RecordStore

PRODUCTS_QUERY = """
query ImportProducts($first: Int!, $after: String) {
  products(first: $first, after: $after, sortKey: ID) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      id
      title
      handle
      vendor
      productType
      status
      tags
      description
      descriptionHtml
      publishedAt
      variants(first: 100) {
        nodes {
          id
          title
          sku
          price
          compareAtPrice
          weight
          weightUnit
          inventoryQuantity
          position
          selectedOptions {
            name
            value
          }
        }
      }
    }
  }
}
"""

# Cost of one products page with nested variants, as reported by Shopify
PRODUCTS_QUERY_COST = 112.0


def parse_gid(gid: str) -> int:
    """
    Extract the numeric ID from a Shopify global ID.

    Args:
        gid: ID such as ``gid://shopify/Product/123``

    Returns:
        The numeric resource ID
    """
    tail = str(gid).rsplit("/", 1)[-1].split("?", 1)[0]
    if not tail.isdigit():
        raise ValueError(f"Not a Shopify global ID: {gid}")
    return int(tail)


def get_products_page_info(data: Mapping[str, Any]) -> Mapping[str, Any]:
    return (data.get("products") or {}).get("pageInfo") or {}


def get_product_nodes(data: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return (data.get("products") or {}).get("nodes") or []


def transform_product(node: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a Shopify product node onto ``products`` columns."""
    return {
        "shopify_product_id": parse_gid(node["id"]),
        "title": node.get("title") or "",
        "handle": node.get("handle"),
        "vendor": node.get("vendor"),
        "product_type": node.get("productType"),
        "shopify_status": node.get("status"),
        "tags": [tag for tag in node.get("tags") or [] if tag and tag.strip()],
        "description": node.get("description"),
        "description_html": node.get("descriptionHtml"),
        "shopify_published_at": node.get("publishedAt"),
    }


def transform_variant(node: Mapping[str, Any], product_id: str) -> Dict[str, Any]:
    """Map a Shopify variant node onto ``product_variants`` columns."""
    options = [option.get("value") for option in node.get("selectedOptions") or []]
    options += [None] * (3 - len(options))

    return {
        "product_id": product_id,
        "shopify_variant_id": parse_gid(node["id"]),
        "title": node.get("title"),
        "sku": node.get("sku") or None,
        "price": node.get("price"),
        "compare_at_price": node.get("compareAtPrice"),
        "weight": node.get("weight"),
        "weight_unit": node.get("weightUnit"),
        "inventory_quantity": node.get("inventoryQuantity"),
        "position": node.get("position"),
        "option1": options[0],
        "option2": options[1],
        "option3": options[2],
    }


class ProductImportPipeline(ImportPipeline):
    """Shopify product pages -> products / product_variants."""

    operation = "Product import"

    def __init__(
        self,
        api_client,
        record_store: RecordStore,
        page_size: int = 50,
        import_statuses: Optional[Iterable[str]] = None,
        estimated_cost: float = PRODUCTS_QUERY_COST,
        cancel_event: Optional[threading.Event] = None,
        max_errors: int = DEFAULT_MAX_ERRORS,
        progress_callback: Optional[Callable[[ImportRunReport, str], None]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize product import pipeline.

        Args:
            api_client: ShopifyAPIClient used for the paginated products query
            record_store: Destination for product and variant records
            page_size: Products per page
            import_statuses: Shopify statuses to import (empty imports all)
            estimated_cost: Cost estimate for one page query
            cancel_event: Event checked between items
            max_errors: Maximum number of error messages kept in the report
            progress_callback: Called after each item
            logger: Logger instance
        """
        super().__init__(cancel_event, max_errors, progress_callback, logger)
        self.api_client = api_client
        self.record_store = record_store
        self.page_size = page_size
        self.import_statuses = {status.upper() for status in import_statuses or []}
        self.estimated_cost = estimated_cost

    def default_source(self) -> Iterable[Dict[str, Any]]:
        pages = self.api_client.paginate(
            PRODUCTS_QUERY,
            variables={},
            get_page_info=get_products_page_info,
            get_nodes=get_product_nodes,
            page_size=self.page_size,
            estimated_cost=self.estimated_cost
        )
        return pages.iter_items()

    def describe_item(self, item: Mapping[str, Any]) -> str:
        return item.get("handle") or item.get("id") or "<unknown product>"

    def process_item(self, item: Mapping[str, Any], report: ImportRunReport) -> ItemOutcome:
        status = (item.get("status") or "").upper()
        if self.import_statuses and status not in self.import_statuses:
            return ItemOutcome.SKIPPED

        product, created = self._upsert_product(item)
        if created:
            report.grouping_records_created += 1

        for variant in (item.get("variants") or {}).get("nodes") or []:
            self.record_store.upsert(
                "product_variants",
                transform_variant(variant, product["id"]),
                on_conflict="shopify_variant_id"
            )

        return ItemOutcome.SUCCEEDED

    def _upsert_product(self, node: Mapping[str, Any]):
        values = transform_product(node)
        values["last_synced_at"] = datetime.now(timezone.utc).isoformat()

        existing = self.record_store.select_one(
            "products",
            {"shopify_product_id": values["shopify_product_id"]},
            columns="id"
        )
        if existing:
            self.record_store.update("products", {"id": existing["id"]}, values)
            return existing, False

        # Local workflow status is only seeded on first import
        values["status"] = (node.get("status") or "active").lower()
        return self.record_store.insert("products", values), True
