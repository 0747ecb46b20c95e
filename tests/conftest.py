"""
Shared fixtures: a catalog and a metadata database on SQLite files.

Layout of the seeded catalog (facet IDs per book):

    book  categories  tags   authors  publishers  translators
    42    {2}         {10}   {7, 8}   {21}        {30}
    100   {1, 2}      {9}    {7}      {20}        {30}
    101   {1}         {10}   {8}      {21}        {31}
    102   {3}         {9}    {7}      {20}        {}

Facets modified at LATE: category 1, author 8, translator 30. Everything
else was last modified at EARLY.
"""

from datetime import datetime

import pytest
from sqlalchemy import DateTime, bindparam, create_engine, text

from bookcatalog import Catalog, Config, Store, StoreHandle

EARLY = datetime(2024, 1, 1, 12, 0, 0)
MIDDLE = datetime(2024, 3, 1, 0, 0, 0)
LATE = datetime(2024, 6, 1, 8, 30, 0)

FACET_TABLES = {
    "category": [(1, "Fiction", LATE), (2, "History", EARLY), (3, "Poetry", EARLY)],
    "tag": [(9, "classic", EARLY), (10, "illustrated", EARLY)],
    "author": [(7, "Austen", EARLY), (8, "Melville", LATE)],
    "publisher": [(20, "Penguin", EARLY), (21, "Vintage", EARLY)],
    "translator": [(30, "Garnett", LATE), (31, "Pevear", EARLY)],
}

BOOKS = [
    (42, "Book forty-two", EARLY),
    (100, "Book one hundred", EARLY),
    (101, "Book one hundred one", LATE),
    (102, "Book one hundred two", EARLY),
]

LINKS = {
    ("category_product_template_rel", "product_template_id", "category_id"): [
        (42, 2), (100, 1), (100, 2), (101, 1), (102, 3),
    ],
    ("book_tag", "book_id", "tag_id"): [
        (42, 10), (100, 9), (101, 10), (102, 9),
    ],
    ("author_product_template_rel", "product_template_id", "author_id"): [
        (42, 7), (42, 8), (100, 7), (101, 8), (102, 7),
    ],
    ("publisher_product_template_rel", "product_template_id", "publisher_id"): [
        (42, 21), (100, 20), (101, 21), (102, 20),
    ],
    ("translator_product_template_rel", "product_template_id", "translator_id"): [
        (42, 30), (100, 30), (101, 31),
    ],
}

REVIEWS = [(1, 100, 4), (2, 100, 5), (3, 42, 3)]


def _insert_entities(conn, table, rows):
    conn.execute(
        text(f"CREATE TABLE {table} (id INTEGER PRIMARY KEY, name TEXT, write_date DATETIME)")
    )
    stmt = text(
        f"INSERT INTO {table} (id, name, write_date) VALUES (:id, :name, :write_date)"
    ).bindparams(bindparam("write_date", type_=DateTime()))
    for pk, name, modified in rows:
        conn.execute(stmt, {"id": pk, "name": name, "write_date": modified})


def _seed_catalog(engine):
    with engine.begin() as conn:
        _insert_entities(conn, "product_template", BOOKS)
        for table, rows in FACET_TABLES.items():
            _insert_entities(conn, table, rows)
        for (table, book_col, facet_col), pairs in LINKS.items():
            conn.execute(text(f"CREATE TABLE {table} ({book_col} INTEGER, {facet_col} INTEGER)"))
            for book_id, facet_id in pairs:
                conn.execute(
                    text(f"INSERT INTO {table} ({book_col}, {facet_col}) VALUES (:b, :f)"),
                    {"b": book_id, "f": facet_id},
                )
        conn.execute(text("CREATE TABLE review (id INTEGER PRIMARY KEY, book_id INTEGER, rating INTEGER)"))
        for pk, book_id, rating in REVIEWS:
            conn.execute(
                text("INSERT INTO review (id, book_id, rating) VALUES (:id, :b, :r)"),
                {"id": pk, "b": book_id, "r": rating},
            )


def _seed_metadata(engine):
    with engine.begin() as conn:
        conn.execute(
            text("CREATE TABLE book_metadata (id INTEGER PRIMARY KEY, book_id INTEGER, key TEXT, value TEXT)")
        )
        conn.execute(
            text("INSERT INTO book_metadata (id, book_id, key, value) VALUES (1, 100, 'pages', '320')")
        )


@pytest.fixture
def store(tmp_path):
    catalog_engine = create_engine(f"sqlite:///{tmp_path / 'catalog.db'}")
    metadata_engine = create_engine(f"sqlite:///{tmp_path / 'metadata.db'}")
    _seed_catalog(catalog_engine)
    _seed_metadata(metadata_engine)
    store = Store(
        Config(),
        engines={
            StoreHandle.CATALOG: catalog_engine,
            StoreHandle.METADATA: metadata_engine,
        },
    )
    yield store
    store.dispose()


@pytest.fixture
def catalog(store):
    return Catalog(store=store)


@pytest.fixture
def broken_store(tmp_path):
    """A store whose databases cannot be opened."""
    missing = tmp_path / "missing" / "nowhere.db"
    engine = create_engine(f"sqlite:///{missing}")
    store = Store(
        Config(),
        engines={StoreHandle.CATALOG: engine, StoreHandle.METADATA: engine},
    )
    yield store
    store.dispose()


@pytest.fixture
def fail_on(store, monkeypatch):
    """Make store.execute raise `error` for statements containing `marker`."""

    def install(marker, error):
        real = store.execute

        def execute(handle, statement, params=None):
            if marker in str(statement):
                raise error
            return real(handle, statement, params)

        monkeypatch.setattr(store, "execute", execute)

    return install
