from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.sql.elements import TextClause

from .constants import StoreHandle
from .errors import StoreUnavailableError

__all__ = [
    "Config",
    "Store",
    "StoreConnection",
]

logger = logging.getLogger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeoutError)


class Config:
    PGHOST = "localhost"
    PGPORT = "5432"
    PGUSER = "postgres"
    PGDATABASE = "darwin"
    METADATA_PGDATABASE = "gumball"

    # Run facet default-fill and the intersection query in one serializable
    # transaction instead of two read-committed round-trips.
    STRICT_FILTER_CONSISTENCY = False

    # Thread pool size for attachment fan-out; 1 runs the lookups sequentially.
    ATTACHMENT_WORKERS = 5

    DEFAULT_PAGE_SIZE = 28
    MAX_PAGE_SIZE = 100

    def url(self, handle: StoreHandle) -> str:
        db = self.METADATA_PGDATABASE if handle == StoreHandle.METADATA else self.PGDATABASE
        return f"postgresql://{self.PGUSER}@{self.PGHOST}:{self.PGPORT}/{db}"


def _reason(e: Exception) -> str:
    return str(getattr(e, "orig", None) or e)


def _rows(result) -> list[dict[str, Any]]:
    return [dict(r) for r in result.mappings().all()]


class StoreConnection:
    """One open connection on a store handle."""

    def __init__(self, handle: StoreHandle, conn: Connection):
        self.handle = handle
        self._conn = conn

    def execute(
        self, statement: TextClause, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        logger.debug("%s: %s %r", self.handle.value, statement, params)
        try:
            return _rows(self._conn.execute(statement, dict(params or {})))
        except _UNAVAILABLE as e:
            raise StoreUnavailableError(self.handle, _reason(e)) from e


class Store:
    """Read-only access to the catalog and metadata databases.

    Every statement is a ``text()`` clause with bound parameters; identifiers
    come from the entity registry, never from caller input.
    """

    def __init__(
        self,
        config: Config | None = None,
        engines: Mapping[StoreHandle, Engine] | None = None,
    ):
        self.config = config or Config()
        if engines is None:
            engines = {
                handle: create_engine(
                    self.config.url(handle),
                    pool_pre_ping=True,
                    pool_recycle=300,
                )
                for handle in StoreHandle
            }
        self.engines = dict(engines)

    def _engine(self, handle: StoreHandle) -> Engine:
        try:
            return self.engines[StoreHandle(handle)]
        except (KeyError, ValueError):
            raise StoreUnavailableError(handle, "no engine configured") from None

    def dialect(self, handle: StoreHandle) -> str:
        return self._engine(handle).dialect.name

    @contextmanager
    def connect(
        self, handle: StoreHandle, isolation_level: str | None = None
    ) -> Iterator[StoreConnection]:
        engine = self._engine(handle)
        try:
            conn = engine.connect()
        except _UNAVAILABLE as e:
            logger.warning("Could not connect to %s store: %s", handle.value, e)
            raise StoreUnavailableError(handle, _reason(e)) from e
        try:
            if isolation_level:
                conn.execution_options(isolation_level=isolation_level)
            with conn.begin():
                yield StoreConnection(handle, conn)
        except _UNAVAILABLE as e:
            raise StoreUnavailableError(handle, _reason(e)) from e
        finally:
            conn.close()

    def execute(
        self,
        handle: StoreHandle,
        statement: TextClause,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        with self.connect(handle) as conn:
            return conn.execute(statement, params)

    def dispose(self) -> None:
        for engine in self.engines.values():
            engine.dispose()
