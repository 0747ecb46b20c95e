from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping

from sqlalchemy import text

from .attachments import AttachmentView, get_attachments
from .changes import stale_ids
from .constants import EntityType, StoreHandle
from .errors import UnknownEntityError
from .facets import FacetFilterRequest, find_by_facets
from .registry import REGISTRY, id_filter, list_all_ids, lookup
from .store import Config, Store

__all__ = ["Catalog"]


def _contains(value: str) -> str:
    """LIKE pattern matching `value` anywhere, with wildcards in it escaped."""
    value = (value or "").replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{value}%"


class Catalog:
    """Main read-model interface."""

    def __init__(self, config: Config | None = None, store: Store | None = None):
        self.store = store or Store(config)
        self.config = self.store.config

    # === Core ===

    def validate_cache(
        self, entity, ids: Iterable[Any], since: datetime | None = None
    ) -> set:
        """IDs of `entity` changed after `since`; all of them for a cold cache."""
        return stale_ids(self.store, entity, ids, since)

    def find_by_facets(
        self,
        request: FacetFilterRequest | Mapping[str, Any],
        strict: bool | None = None,
    ) -> list:
        if not isinstance(request, FacetFilterRequest):
            request = FacetFilterRequest.from_mapping(request)
        return find_by_facets(self.store, request, strict=strict)

    def get_attachments(
        self, book_id, since: datetime | None = None, workers: int | None = None
    ) -> AttachmentView:
        return get_attachments(self.store, book_id, since, workers=workers)

    def list_ids(self, entity) -> list:
        return list_all_ids(self.store, entity)

    # === Plain lookups ===

    def _page(self, limit: int | None, offset: int) -> dict:
        if limit is None:
            limit = self.config.DEFAULT_PAGE_SIZE
        limit = max(1, min(self.config.MAX_PAGE_SIZE, int(limit)))
        return {"limit": limit, "offset": max(0, int(offset))}

    def list_books(self, limit: int | None = None, offset: int = 0) -> list:
        """Book IDs, one page at a time."""
        book = REGISTRY[EntityType.BOOK]
        sql = text(
            f"SELECT {book.key} AS id FROM {book.table} "
            f"ORDER BY {book.key} LIMIT :limit OFFSET :offset"
        )
        rows = self.store.execute(book.store, sql, self._page(limit, offset))
        return [r["id"] for r in rows]

    def get_book(self, book_id) -> dict | None:
        return self.get_entity(EntityType.BOOK, book_id)

    def get_books(self, book_ids: Iterable[Any]) -> list[dict]:
        ids = list(dict.fromkeys(book_ids))
        if not ids:
            return []
        book = REGISTRY[EntityType.BOOK]
        id_sql, id_bind = id_filter(book.key, "ids", self.store.dialect(book.store))
        sql = text(
            f"SELECT * FROM {book.table} WHERE {id_sql} ORDER BY {book.key}"
        ).bindparams(id_bind)
        return self.store.execute(book.store, sql, {"ids": ids})

    def get_entity(self, entity, entity_id) -> dict | None:
        """One row of any registered entity type, or None."""
        spec = lookup(entity)
        sql = text(f"SELECT * FROM {spec.table} WHERE {spec.key} = :id")
        rows = self.store.execute(spec.store, sql, {"id": entity_id})
        return rows[0] if rows else None

    def list_entities(self, entity, limit: int | None = None, offset: int = 0) -> list[dict]:
        """Rows of one entity type, ordered by key, one page at a time."""
        spec = lookup(entity)
        sql = text(
            f"SELECT * FROM {spec.table} ORDER BY {spec.key} LIMIT :limit OFFSET :offset"
        )
        return self.store.execute(spec.store, sql, self._page(limit, offset))

    def books_by_facet(
        self, facet, facet_id, limit: int | None = None, offset: int = 0
    ) -> list:
        """IDs of the books related to one category, tag, author, publisher or translator."""
        spec = lookup(facet)
        if spec.join_table is None:
            raise UnknownEntityError(facet)
        book = REGISTRY[EntityType.BOOK]
        sql = text(
            f"SELECT b.{book.key} AS id FROM {book.table} b "
            f"JOIN {spec.join_table} r ON b.{book.key} = r.{spec.join_book} "
            f"WHERE r.{spec.join_key} = :facet_id "
            f"ORDER BY b.{book.key} LIMIT :limit OFFSET :offset"
        )
        params = {"facet_id": facet_id, **self._page(limit, offset)}
        return [r["id"] for r in self.store.execute(book.store, sql, params)]

    def find_books_by_name(self, name: str, limit: int | None = None, offset: int = 0) -> list:
        """IDs of books whose name contains `name`."""
        book = REGISTRY[EntityType.BOOK]
        sql = text(
            f"SELECT {book.key} AS id FROM {book.table} "
            f"WHERE LOWER(name) LIKE LOWER(:q) ESCAPE '\\' "
            f"ORDER BY {book.key} LIMIT :limit OFFSET :offset"
        )
        params = {"q": _contains(name), **self._page(limit, offset)}
        return [r["id"] for r in self.store.execute(book.store, sql, params)]

    def find_books_by_author_name(
        self, name: str, limit: int | None = None, offset: int = 0
    ) -> list:
        """IDs of books with at least one author whose name contains `name`."""
        book = REGISTRY[EntityType.BOOK]
        author = REGISTRY[EntityType.AUTHOR]
        sql = text(
            f"SELECT DISTINCT b.{book.key} AS id FROM {book.table} b "
            f"JOIN {author.join_table} r ON b.{book.key} = r.{author.join_book} "
            f"JOIN {author.table} a ON a.{author.key} = r.{author.join_key} "
            f"WHERE LOWER(a.name) LIKE LOWER(:q) ESCAPE '\\' "
            f"ORDER BY b.{book.key} LIMIT :limit OFFSET :offset"
        )
        params = {"q": _contains(name), **self._page(limit, offset)}
        return [r["id"] for r in self.store.execute(book.store, sql, params)]

    def get_book_metadata(self, book_id) -> list[dict]:
        sql = text("SELECT * FROM book_metadata WHERE book_id = :id")
        return self.store.execute(StoreHandle.METADATA, sql, {"id": book_id})

    def get_book_reviews(self, book_id) -> list[dict]:
        sql = text("SELECT * FROM review WHERE book_id = :id ORDER BY id")
        return self.store.execute(StoreHandle.CATALOG, sql, {"id": book_id})

    def get_book_rating(self, book_id) -> dict:
        sql = text(
            "SELECT AVG(rating) AS average_rating, COUNT(*) AS total_reviews "
            "FROM review WHERE book_id = :id"
        )
        rows = self.store.execute(StoreHandle.CATALOG, sql, {"id": book_id})
        row = rows[0] if rows else {}
        return {
            "average_rating": float(row.get("average_rating") or 0),
            "total_reviews": int(row.get("total_reviews") or 0),
        }
