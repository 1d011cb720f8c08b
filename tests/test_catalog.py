"""
Test suite for catalog helpers.

Tests payload validation, partial updates and the product repository.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src to path for imports
import sys
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from pim_sync.catalog.repository import ProductRepository
from pim_sync.catalog.validation import (
    UNSET,
    ProductUpdate,
    VariantUpdate,
    ValidationError,
    build_create_payload,
    build_update_payload,
    build_variant_payload,
    normalize_tags,
)
from pim_sync.storage.record_store import QueryPage, RecordNotFoundError

from conftest import FakeRecordStore


class TestNormalizeTags:
    """Test tag normalization."""

    def test_list_keeps_non_blank_strings(self):
        assert normalize_tags(["a", " ", "", 3, "b"]) == ["a", "b"]

    def test_comma_string_is_split(self):
        assert normalize_tags(" winter, leather ,,boots ") == ["winter", "leather", "boots"]

    def test_other_values(self):
        assert normalize_tags(None) == []
        assert normalize_tags(42) == []
        assert normalize_tags({"a": 1}) == []


class TestPayloads:
    """Test create and update payload building."""

    def test_create_requires_title(self):
        with pytest.raises(ValidationError, match="title is required"):
            build_create_payload({"handle": "boot"})

        with pytest.raises(ValidationError, match="title is required"):
            build_create_payload({"title": 12})

    def test_create_defaults(self):
        payload = build_create_payload({"title": "Boot", "tags": "a, b"})

        assert payload["title"] == "Boot"
        assert payload["status"] == "active"
        assert payload["tags"] == ["a", "b"]
        assert payload["handle"] is None
        assert payload["shopify_product_id"] is None

    def test_create_keeps_explicit_status(self):
        assert build_create_payload({"title": "Boot", "status": "draft"})["status"] == "draft"

    def test_create_keeps_empty_status(self):
        assert build_create_payload({"title": "Boot", "status": ""})["status"] == ""
        assert build_create_payload({"title": "Boot", "status": None})["status"] == "active"

    def test_update_only_includes_present_keys(self):
        payload = build_update_payload({"title": "New", "vendor": None, "unknown": 1})

        assert payload == {"title": "New", "vendor": None}

    def test_update_normalizes_tags(self):
        assert build_update_payload({"tags": "x, y"}) == {"tags": ["x", "y"]}

    def test_update_rejects_non_mapping(self):
        with pytest.raises(ValidationError, match="Invalid body"):
            build_update_payload(["title"])

    def test_product_update_struct(self):
        update = ProductUpdate(title="Boot", sku_label=None)

        assert update.handle is UNSET
        assert update.to_payload() == {"title": "Boot", "sku_label": None}
        assert ProductUpdate().to_payload() == {}

    def test_variant_update_struct(self):
        update = VariantUpdate.from_mapping({"price": "5.00", "option2": None, "id": "v9", "sku_label": "x"})

        assert update.sku is UNSET
        assert update.to_payload() == {"price": "5.00", "option2": None}
        assert VariantUpdate().to_payload() == {}

        with pytest.raises(ValidationError, match="Invalid body"):
            VariantUpdate.from_mapping("price=5")

    def test_variant_requires_product_id(self):
        with pytest.raises(ValidationError, match="product_id is required"):
            build_variant_payload({"title": "M"})

        payload = build_variant_payload({"title": "M", "price": "10.00"}, product_id="p1")
        assert payload["product_id"] == "p1"
        assert payload["price"] == "10.00"
        assert payload["option1"] is None


class TestProductRepository:
    """Test catalog operations over the record store."""

    @pytest.fixture
    def store(self):
        return FakeRecordStore({
            "products": [{"id": "p1", "title": "Boot", "sku_label": "BOOT-1"}],
            "product_variants": [
                {"id": "v2", "product_id": "p1", "title": "L", "position": 2},
                {"id": "v1", "product_id": "p1", "title": "M", "position": 1},
            ],
        })

    @pytest.fixture
    def repository(self, store):
        return ProductRepository(store)

    def test_list_products_pages_and_searches(self):
        store = Mock()
        store.search.return_value = QueryPage(rows=[{"id": "p1"}], total=41)
        repository = ProductRepository(store)

        page = repository.list_products(page=3, page_size=20, search="boot")

        args, kwargs = store.search.call_args
        assert args[0] == "products"
        assert args[2] == ("title", "sku_label", "handle")
        assert kwargs["term"] == "boot"
        assert kwargs["order_by"] == "title"
        assert kwargs["offset"] == 40
        assert kwargs["limit"] == 20
        assert page.total == 41
        assert page.extra == {"page": 3, "page_size": 20}

    def test_get_product_with_variants(self, repository):
        product = repository.get_product("p1")

        assert product["title"] == "Boot"
        assert [variant["id"] for variant in product["variants"]] == ["v1", "v2"]

    def test_get_missing_product(self, repository):
        with pytest.raises(RecordNotFoundError):
            repository.get_product("nope")

    def test_create_product(self, repository, store):
        product = repository.create_product({"title": "Sandal", "tags": ["summer"]})

        assert product["status"] == "active"
        assert len(store.rows("products")) == 2

    def test_update_product(self, repository):
        product = repository.update_product("p1", {"sku_label": "BOOT-2"})

        assert product["sku_label"] == "BOOT-2"
        assert product["title"] == "Boot"

    def test_update_missing_product(self, repository):
        with pytest.raises(RecordNotFoundError):
            repository.update_product("nope", {"title": "x"})

    def test_update_product_without_fields(self, repository):
        with pytest.raises(ValidationError):
            repository.update_product("p1", {"unknown": 1})

    def test_variant_lifecycle(self, repository, store):
        variant = repository.create_variant({"product_id": "p1", "title": "S", "position": 0})

        updated = repository.update_variant(variant["id"], {"price": "5.00", "id": "hijack"})
        assert updated["price"] == "5.00"
        assert updated["id"] == variant["id"]

        repository.delete_variant(variant["id"])
        assert len(store.rows("product_variants")) == 2

    def test_update_missing_variant(self, repository):
        with pytest.raises(RecordNotFoundError):
            repository.update_variant("nope", {"price": "1.00"})
