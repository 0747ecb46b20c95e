from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import DateTime, bindparam, text

from .registry import id_filter, lookup

__all__ = ["stale_ids"]

logger = logging.getLogger(__name__)


def stale_ids(
    store, entity, candidate_ids: Iterable[Any], since: datetime | None = None
) -> set:
    """
    IDs among `candidate_ids` modified strictly after `since`.

    A missing `since` is a cold cache: every candidate is stale and the store
    is not consulted. IDs unknown to the store are never reported, so the
    result is always a subset of the candidates.

    Raises:
        UnknownEntityError: `entity` is not registered
        StoreUnavailableError: the store could not be reached
    """
    spec = lookup(entity)
    ids = set(candidate_ids)
    if not ids or since is None:
        return ids

    id_sql, id_bind = id_filter(spec.key, "ids", store.dialect(spec.store))
    sql = text(
        f"SELECT {spec.key} AS id FROM {spec.table} "
        f"WHERE {id_sql} AND {spec.modified} > :since"
    ).bindparams(id_bind, bindparam("since", type_=DateTime()))
    rows = store.execute(spec.store, sql, {"ids": sorted(ids, key=str), "since": since})

    # The store may coerce "8" to 8; report the caller's own values.
    by_key = {str(c): c for c in ids}
    stale = {by_key[str(r["id"])] for r in rows if str(r["id"]) in by_key}
    logger.debug(
        "%s: %d of %d candidates changed since %s",
        spec.type.value, len(stale), len(ids), since,
    )
    return stale
