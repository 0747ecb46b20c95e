from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, bindparam, text

from .constants import ATTACHMENT_FIELDS, FACETS, EntityType
from .errors import AggregationError
from .registry import lookup

__all__ = [
    "AttachmentView",
    "fetch_facet",
    "get_attachments",
    "incremental_facets",
]

logger = logging.getLogger(__name__)


@dataclass
class AttachmentView:
    book_id: Any
    since: datetime | None = None
    categories: list = field(default_factory=list)
    tags: list = field(default_factory=list)
    authors: list = field(default_factory=list)
    translators: list = field(default_factory=list)
    publishers: list = field(default_factory=list)
    # Facets returned in full although `since` was given
    unfiltered: tuple = ()

    def for_facet(self, facet: EntityType) -> list:
        return getattr(self, ATTACHMENT_FIELDS[facet])

    def to_dict(self) -> dict[str, Any]:
        return {
            "book_id": self.book_id,
            "since": self.since.isoformat() if self.since else None,
            **{ATTACHMENT_FIELDS[f]: self.for_facet(f) for f in FACETS},
            "unfiltered": [f.value for f in self.unfiltered],
        }


def incremental_facets() -> list[EntityType]:
    """Facets whose per-book lookup can be restricted to changes since a timestamp."""
    return [f for f in FACETS if lookup(f).incremental]


def fetch_facet(store, facet, book_id, since: datetime | None = None) -> list[dict]:
    """Facet rows joined to one book, optionally only those modified after `since`."""
    spec = lookup(facet)
    sql = (
        f"SELECT f.* FROM {spec.table} f "
        f"JOIN {spec.join_table} r ON f.{spec.key} = r.{spec.join_key} "
        f"WHERE r.{spec.join_book} = :book_id"
    )
    params: dict[str, Any] = {"book_id": book_id}
    binds = []
    if since is not None and spec.incremental:
        sql += f" AND f.{spec.modified} > :since"
        params["since"] = since
        binds.append(bindparam("since", type_=DateTime()))
    sql += f" ORDER BY f.{spec.key}"
    return store.execute(spec.store, text(sql).bindparams(*binds), params)


def _sequential(store, book_id, since) -> dict:
    results = {}
    for facet in FACETS:
        try:
            results[facet] = fetch_facet(store, facet, book_id, since)
        except Exception as e:
            raise AggregationError(facet, book_id, e) from e
    return results


def _concurrent(store, book_id, since, workers: int) -> dict:
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {
            pool.submit(fetch_facet, store, facet, book_id, since): facet
            for facet in FACETS
        }
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        failed = [f for f in futures if f in done and f.exception() is not None]
        if failed:
            for f in pending:
                f.cancel()
            future = failed[0]
            facet = futures[future]
            e = future.exception()
            raise AggregationError(facet, book_id, e) from e
        return {facet: future.result() for future, facet in futures.items()}


def get_attachments(
    store, book_id, since: datetime | None = None, workers: int | None = None
) -> AttachmentView:
    """
    Related categories, tags, authors, translators and publishers of one book.

    With `since`, each facet that supports it only returns rows modified after
    that timestamp; facets that don't are returned in full and listed in
    `AttachmentView.unfiltered`.

    All-or-nothing: the first failing facet lookup raises AggregationError
    naming that facet and pending lookups are cancelled.
    """
    if workers is None:
        workers = store.config.ATTACHMENT_WORKERS
    if workers > 1:
        results = _concurrent(store, book_id, since, min(workers, len(FACETS)))
    else:
        results = _sequential(store, book_id, since)

    unfiltered = ()
    if since is not None:
        unfiltered = tuple(f for f in FACETS if not lookup(f).incremental)
    view = AttachmentView(book_id=book_id, since=since, unfiltered=unfiltered)
    for facet, rows in results.items():
        setattr(view, ATTACHMENT_FIELDS[facet], rows)
    logger.debug(
        "Attachments for book %s: %s", book_id,
        ", ".join(f"{len(rows)} {ATTACHMENT_FIELDS[f]}" for f, rows in results.items()),
    )
    return view
