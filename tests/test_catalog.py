"""
Tests for catalog queries and admin mutations (mongomock backed).
"""

import pytest

from errors import NotFoundError, ValidationError
from schemas import ProductUpdate


@pytest.fixture
def seeded(make_product):
    return {
        "lamp": make_product(name="Desk Lamp", price=25.0, category="home"),
        "mug": make_product(name="Coffee Mug", price=8.5, category="kitchen"),
        "lampshade": make_product(name="LAMPSHADE", price=12.0, category="home"),
        "kettle": make_product(name="Kettle", price=40.0, category="kitchen"),
    }


class TestCatalogQuery:

    def test_list_sorted_by_price_desc(self, catalog, seeded):
        prices = [p["price"] for p in catalog.list()]
        assert prices == [40.0, 25.0, 12.0, 8.5]

    def test_search_is_case_insensitive_substring(self, catalog, seeded):
        names = [p["name"] for p in catalog.list(search="lamp")]
        assert names == ["Desk Lamp", "LAMPSHADE"]

    def test_search_text_is_literal(self, catalog, make_product):
        make_product(name="C++ Primer", price=30.0, category="books")
        make_product(name="Cats", price=5.0, category="books")
        assert [p["name"] for p in catalog.list(search="c++")] == ["C++ Primer"]

    def test_category_is_exact(self, catalog, seeded):
        assert [p["name"] for p in catalog.list(category="kitchen")] == ["Kettle", "Coffee Mug"]
        assert catalog.list(category="Kitchen") == []

    def test_search_and_category_combine(self, catalog, seeded):
        assert [p["name"] for p in catalog.list(search="lamp", category="home")] == ["Desk Lamp", "LAMPSHADE"]
        assert catalog.list(search="lamp", category="kitchen") == []

    def test_get(self, catalog, seeded):
        assert catalog.get(seeded["mug"]["id"])["name"] == "Coffee Mug"

    def test_get_missing_or_malformed_id(self, catalog):
        assert catalog.get("0123456789abcdef01234567") is None
        assert catalog.get("not-an-id") is None


class TestCatalogMutation:

    def test_create_sets_id_and_timestamp(self, make_product):
        product = make_product(name="Hammer", price=15.0)
        assert product["id"]
        assert product["updated_at"] is not None
        assert "_id" not in product

    def test_update_merges_fields(self, catalog, seeded):
        lamp = seeded["lamp"]
        updated = catalog.update(lamp["id"], ProductUpdate(price=30.0))
        assert updated["price"] == 30.0
        assert updated["name"] == "Desk Lamp"
        assert updated["sku"] == lamp["sku"]

    def test_update_missing_product(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.update("0123456789abcdef01234567", ProductUpdate(name="x"))
        with pytest.raises(NotFoundError):
            catalog.update("bogus", ProductUpdate(name="x"))

    def test_update_without_fields(self, catalog, seeded):
        with pytest.raises(ValidationError):
            catalog.update(seeded["lamp"]["id"], ProductUpdate())

    def test_delete_is_idempotent(self, catalog, seeded):
        mug_id = seeded["mug"]["id"]
        assert catalog.delete(mug_id) is True
        assert catalog.delete(mug_id) is False
        assert catalog.delete("bogus") is False
        assert catalog.get(mug_id) is None
