from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from .constants import FACET_REQUEST_KEYS, FACETS, EntityType
from .errors import NoFilterProvidedError, UnknownEntityError
from .registry import REGISTRY, id_filter, list_all_ids

__all__ = [
    "FacetFilterRequest",
    "find_by_facets",
]

logger = logging.getLogger(__name__)


# =============================================================================
# FacetFilterRequest
# =============================================================================


@dataclass
class FacetFilterRequest:
    category_ids: list | None = None
    tag_ids: list | None = None
    author_ids: list | None = None
    translator_ids: list | None = None
    publisher_ids: list | None = None

    @classmethod
    def from_mapping(cls, body: Mapping[str, Any] | None) -> FacetFilterRequest:
        """Build a request from e.g. a decoded JSON body. Unknown keys are rejected."""
        body = body or {}
        unknown = [k for k in body if k not in FACET_REQUEST_KEYS]
        if unknown:
            raise UnknownEntityError(unknown[0])
        req = cls()
        for key, value in body.items():
            if value is None:
                continue
            if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                value = [value]
            setattr(req, key, list(value))
        return req

    # === Fluent setters ===

    def categories(self, *ids) -> FacetFilterRequest:
        self.category_ids = list(ids)
        return self

    def tags(self, *ids) -> FacetFilterRequest:
        self.tag_ids = list(ids)
        return self

    def authors(self, *ids) -> FacetFilterRequest:
        self.author_ids = list(ids)
        return self

    def translators(self, *ids) -> FacetFilterRequest:
        self.translator_ids = list(ids)
        return self

    def publishers(self, *ids) -> FacetFilterRequest:
        self.publisher_ids = list(ids)
        return self

    # === Accessors ===

    def ids_for(self, facet: EntityType) -> list:
        """IDs supplied for a facet; empty when the facet was omitted."""
        return list(getattr(self, _REQUEST_FIELDS[facet]) or [])

    def provided(self) -> list[EntityType]:
        return [f for f in FACETS if self.ids_for(f)]

    def omitted(self) -> list[EntityType]:
        return [f for f in FACETS if not self.ids_for(f)]

    # === SQL Building ===

    def build(
        self,
        defaults: Mapping[EntityType, list] | None = None,
        dialect: str | None = None,
    ) -> tuple[TextClause, dict]:
        """Intersection query over all five facets.

        `defaults` supplies the ID list for every omitted facet.
        """
        defaults = defaults or {}
        book = REGISTRY[EntityType.BOOK]
        clauses = []
        params = {}
        binds = []
        for facet in FACETS:
            spec = REGISTRY[facet]
            name = _REQUEST_FIELDS[facet]
            ids = self.ids_for(facet)
            if not ids:
                if facet not in defaults:
                    raise ValueError(f"{facet.value} facet was neither provided nor given a default")
                ids = list(defaults[facet])
            id_sql, id_bind = id_filter(spec.join_key, name, dialect)
            clauses.append(
                f"b.{book.key} IN (SELECT {spec.join_book} FROM {spec.join_table} "
                f"WHERE {id_sql})"
            )
            params[name] = ids
            binds.append(id_bind)

        sql = (
            f"SELECT b.{book.key} AS id FROM {book.table} b "
            f"WHERE {' AND '.join(clauses)} ORDER BY b.{book.key}"
        )
        return text(sql).bindparams(*binds), params


_REQUEST_FIELDS = {facet: key for key, facet in FACET_REQUEST_KEYS.items()}


# =============================================================================
# Composer
# =============================================================================


def find_by_facets(store, request: FacetFilterRequest, strict: bool | None = None) -> list:
    """
    Book IDs related to at least one listed ID in every facet.

    Omitted facets are filled with every currently known ID of that facet
    before the intersection query runs. Unless `strict` is set those are
    separate read-committed round-trips, so facet membership may change in
    between; `strict` runs both on one serializable transaction.

    Raises:
        NoFilterProvidedError: every facet list is empty or missing
        StoreUnavailableError: the store could not be reached
    """
    if not request.provided():
        raise NoFilterProvidedError()
    if strict is None:
        strict = store.config.STRICT_FILTER_CONSISTENCY

    book = REGISTRY[EntityType.BOOK]
    dialect = store.dialect(book.store)
    if strict:
        with store.connect(book.store, isolation_level="SERIALIZABLE") as conn:
            defaults = {
                f: list_all_ids(store, f, connection=conn) for f in request.omitted()
            }
            sql, params = request.build(defaults, dialect)
            rows = conn.execute(sql, params)
    else:
        defaults = {f: list_all_ids(store, f) for f in request.omitted()}
        sql, params = request.build(defaults, dialect)
        rows = store.execute(book.store, sql, params)

    ids = [r["id"] for r in rows]
    logger.debug(
        "Facet filter on %s matched %d books",
        ", ".join(f.value for f in request.provided()), len(ids),
    )
    return ids
