"""Tests for the Catalog facade and its plain lookups."""

import pytest

from bookcatalog import (
    Config,
    EntityType,
    FacetFilterRequest,
    StoreHandle,
    UnknownEntityError,
)
from conftest import MIDDLE


class TestCore:
    def test_validate_cache(self, catalog):
        assert catalog.validate_cache("book", [42, 101], MIDDLE) == {101}
        assert catalog.validate_cache("book", [42, 101]) == {42, 101}

    def test_find_by_facets_accepts_mapping(self, catalog):
        assert catalog.find_by_facets({"category_ids": [1], "author_ids": [7]}) == [100]
        assert catalog.find_by_facets(FacetFilterRequest(category_ids=[1])) == [100, 101]

    def test_find_by_facets_rejects_unknown_keys(self, catalog):
        with pytest.raises(UnknownEntityError):
            catalog.find_by_facets({"genre_ids": [1]})

    def test_get_attachments(self, catalog):
        view = catalog.get_attachments(100, workers=1)
        assert [r["id"] for r in view.authors] == [7]

    def test_list_ids(self, catalog):
        assert catalog.list_ids(EntityType.PUBLISHER) == [20, 21]
        assert catalog.list_ids("book") == [42, 100, 101, 102]


class TestLookups:
    def test_list_books_paginates(self, catalog):
        assert catalog.list_books(limit=2) == [42, 100]
        assert catalog.list_books(limit=2, offset=2) == [101, 102]
        assert catalog.list_books(limit=2, offset=4) == []

    def test_list_books_clamps_limit(self, catalog):
        assert catalog.list_books(limit=0) == [42]

    def test_get_book(self, catalog):
        assert catalog.get_book(100)["name"] == "Book one hundred"
        assert catalog.get_book(999) is None

    def test_get_books(self, catalog):
        rows = catalog.get_books([101, 42, 101, 999])
        assert [r["id"] for r in rows] == [42, 101]
        assert catalog.get_books([]) == []

    def test_metadata_store(self, catalog):
        rows = catalog.get_book_metadata(100)
        assert [(r["key"], r["value"]) for r in rows] == [("pages", "320")]
        assert catalog.get_book_metadata(42) == []

    def test_reviews_and_rating(self, catalog):
        assert [r["rating"] for r in catalog.get_book_reviews(100)] == [4, 5]
        assert catalog.get_book_rating(100) == {"average_rating": 4.5, "total_reviews": 2}

    def test_rating_without_reviews(self, catalog):
        assert catalog.get_book_rating(101) == {"average_rating": 0.0, "total_reviews": 0}


class TestEntities:
    def test_get_entity(self, catalog):
        assert catalog.get_entity("translator", 30)["name"] == "Garnett"
        assert catalog.get_entity(EntityType.CATEGORY, 3)["name"] == "Poetry"
        assert catalog.get_entity("translator", 99) is None

    def test_get_entity_unknown_type(self, catalog):
        with pytest.raises(UnknownEntityError):
            catalog.get_entity("shelf", 1)

    def test_list_entities(self, catalog):
        assert [r["id"] for r in catalog.list_entities("translator")] == [30, 31]
        assert [r["id"] for r in catalog.list_entities("category", limit=1, offset=1)] == [2]


class TestBooksByFacet:
    def test_each_facet(self, catalog):
        assert catalog.books_by_facet("tag", 9) == [100, 102]
        assert catalog.books_by_facet(EntityType.AUTHOR, 7) == [42, 100, 102]
        assert catalog.books_by_facet("translator", 31) == [101]
        assert catalog.books_by_facet("publisher", 99) == []

    def test_paginates(self, catalog):
        assert catalog.books_by_facet("author", 7, limit=1, offset=1) == [100]

    def test_book_is_not_a_facet(self, catalog):
        with pytest.raises(UnknownEntityError):
            catalog.books_by_facet("book", 1)


class TestSearch:
    def test_by_name(self, catalog):
        assert catalog.find_books_by_name("one hundred") == [100, 101, 102]
        assert catalog.find_books_by_name("forty") == [42]

    def test_wildcards_are_literal(self, catalog):
        assert catalog.find_books_by_name("%") == []
        assert catalog.find_books_by_name("_") == []

    def test_by_author_name(self, catalog):
        assert catalog.find_books_by_author_name("Melville") == [42, 101]
        assert catalog.find_books_by_author_name("melv") == [42, 101]
        assert catalog.find_books_by_author_name("Tolstoy") == []


class TestConfig:
    def test_url_uses_instance_overrides(self):
        cfg = Config()
        cfg.PGHOST = "db"
        assert cfg.url(StoreHandle.CATALOG) == "postgresql://postgres@db:5432/darwin"
        assert cfg.url(StoreHandle.METADATA) == "postgresql://postgres@db:5432/gumball"
        assert Config().PGHOST != "db"
