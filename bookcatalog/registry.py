from __future__ import annotations

from collections import namedtuple
from typing import Any

from sqlalchemy import bindparam, text

from .constants import EntityType, StoreHandle
from .errors import UnknownEntityError

__all__ = [
    "EntitySpec",
    "REGISTRY",
    "id_filter",
    "list_all_ids",
    "lookup",
]

# join_* are None for the book table itself. `incremental` marks facets whose
# per-book lookup honours a `since` timestamp.
EntitySpec = namedtuple(
    "EntitySpec",
    [
        "type",
        "table",
        "key",
        "modified",
        "store",
        "join_table",
        "join_book",
        "join_key",
        "incremental",
    ],
)

REGISTRY = {
    EntityType.BOOK: EntitySpec(
        EntityType.BOOK, "product_template", "id", "write_date",
        StoreHandle.CATALOG, None, None, None, False,
    ),
    EntityType.CATEGORY: EntitySpec(
        EntityType.CATEGORY, "category", "id", "write_date",
        StoreHandle.CATALOG, "category_product_template_rel",
        "product_template_id", "category_id", True,
    ),
    EntityType.TAG: EntitySpec(
        EntityType.TAG, "tag", "id", "write_date",
        StoreHandle.CATALOG, "book_tag", "book_id", "tag_id", True,
    ),
    EntityType.AUTHOR: EntitySpec(
        EntityType.AUTHOR, "author", "id", "write_date",
        StoreHandle.CATALOG, "author_product_template_rel",
        "product_template_id", "author_id", True,
    ),
    EntityType.PUBLISHER: EntitySpec(
        EntityType.PUBLISHER, "publisher", "id", "write_date",
        StoreHandle.CATALOG, "publisher_product_template_rel",
        "product_template_id", "publisher_id", True,
    ),
    # Translator links are plain edges; the book lookup has no `since` support.
    EntityType.TRANSLATOR: EntitySpec(
        EntityType.TRANSLATOR, "translator", "id", "write_date",
        StoreHandle.CATALOG, "translator_product_template_rel",
        "product_template_id", "translator_id", False,
    ),
}


def lookup(entity: EntityType | str) -> EntitySpec:
    """Registry entry for an entity type or its string name."""
    try:
        return REGISTRY[EntityType(entity)]
    except (KeyError, ValueError, TypeError):
        raise UnknownEntityError(entity) from None


def list_all_ids(store, entity: EntityType | str, connection=None) -> list[Any]:
    """Every known key of an entity type, ordered by key.

    Pass `connection` to read through an already open StoreConnection on the
    entity's store handle.
    """
    spec = lookup(entity)
    sql = text(f"SELECT {spec.key} AS id FROM {spec.table} ORDER BY {spec.key}")
    if connection is not None and connection.handle == spec.store:
        rows = connection.execute(sql)
    else:
        rows = store.execute(spec.store, sql)
    return [r["id"] for r in rows]


def id_filter(column: str, name: str, dialect: str | None = None):
    """
    SQL condition matching `column` against the ID list bound as `name`.

    Postgres binds the list as one array (`= ANY(:name)`). Elsewhere it is an
    expanding `IN`, which renders one placeholder per ID.

    Returns:
        (sql, bindparam) to add to a text() clause
    """
    if dialect == "postgresql":
        return f"{column} = ANY(:{name})", bindparam(name)
    return f"{column} IN :{name}", bindparam(name, expanding=True)
