import cherrypy

from .catalog import Catalog
from .errors import (
    AggregationError,
    NoFilterProvidedError,
    StoreUnavailableError,
    UnknownEntityError,
)
from .helpers import format_result, parse_since


def _parse_id(value):
    """IDs are opaque; numeric strings are passed on as ints."""
    value = str(value or "").strip()
    if not value:
        raise cherrypy.HTTPError(400, "Missing id")
    return int(value) if value.isdigit() else value


def _parse_since(value):
    try:
        return parse_since(value)
    except (ValueError, TypeError):
        raise cherrypy.HTTPError(400, "Invalid since timestamp")


def _parse_paging(page, limit, config) -> tuple[int, int]:
    """(limit, offset) from page/limit query parameters."""
    try:
        page = max(1, int(page))
        limit = int(limit) if limit else config.DEFAULT_PAGE_SIZE
    except (ValueError, TypeError):
        raise cherrypy.HTTPError(400, "Invalid page or limit")
    limit = max(1, min(config.MAX_PAGE_SIZE, limit))
    return limit, (page - 1) * limit


def _sorted_ids(ids) -> list:
    try:
        return sorted(ids)
    except TypeError:
        # mixed ID types
        return sorted(ids, key=str)


def _json_body() -> dict:
    body = getattr(cherrypy.request, "json", None)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise cherrypy.HTTPError(400, "Expected a JSON object")
    return body


class API:
    def __init__(self, catalog: Catalog | None = None):
        self.catalog = catalog or Catalog()

    def _call(self, what: str, fn, *args, **kwargs):
        """Run a catalog call, mapping catalog errors to HTTP errors."""
        try:
            return fn(*args, **kwargs)
        except (UnknownEntityError, NoFilterProvidedError) as e:
            raise cherrypy.HTTPError(400, str(e))
        except StoreUnavailableError as e:
            cherrypy.log(f"{what} error: {e}")
            raise cherrypy.HTTPError(503, "Store unavailable")
        except AggregationError as e:
            cherrypy.log(f"{what} error: {e}")
            status = 503 if e.retryable else 502
            raise cherrypy.HTTPError(status, f"Fetching {e.facet.value} failed")

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def books(self, page=1, limit=None):
        limit, offset = _parse_paging(page, limit, self.catalog.config)
        ids = self._call("List", self.catalog.list_books, limit, offset)
        return {"page": offset // limit + 1, "page_size": limit, "results": ids}

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def book(self, id=None):
        row = self._call("Book", self.catalog.get_book, _parse_id(id))
        if row is None:
            raise cherrypy.HTTPError(404, "Book not found")
        return row

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def attachments(self, id=None, since=None):
        view = self._call(
            "Attachments",
            self.catalog.get_attachments,
            _parse_id(id),
            _parse_since(since),
        )
        return view.to_dict()

    @cherrypy.expose
    @cherrypy.tools.json_in()  # type: ignore[attr-defined]
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def filter(self):
        ids = self._call("Filter", self.catalog.find_by_facets, _json_body())
        return {"results": ids, "total": len(ids)}

    @cherrypy.expose
    @cherrypy.tools.json_in()  # type: ignore[attr-defined]
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def validate(self):
        """Cache validation: which of the given IDs changed since a timestamp."""
        body = _json_body()
        ids = body.get("ids") or []
        if not isinstance(ids, list):
            raise cherrypy.HTTPError(400, "ids must be a list")
        ids = [_parse_id(i) for i in ids]
        stale = self._call(
            "Validate",
            self.catalog.validate_cache,
            body.get("entity", "book"),
            ids,
            _parse_since(body.get("since")),
        )
        return {"stale": _sorted_ids(stale)}

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def by_facet(self, facet=None, id=None, page=1, limit=None):
        """Books related to one facet record, e.g. /by_facet?facet=tag&id=9."""
        limit, offset = _parse_paging(page, limit, self.catalog.config)
        ids = self._call(
            "Facet list", self.catalog.books_by_facet, facet, _parse_id(id), limit, offset
        )
        return {"page": offset // limit + 1, "page_size": limit, "results": ids}

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def search(self, name="", author="", page=1, limit=None):
        """Books by name substring, or by author name with `author=`."""
        limit, offset = _parse_paging(page, limit, self.catalog.config)
        if author.strip():
            ids = self._call(
                "Search", self.catalog.find_books_by_author_name, author.strip(), limit, offset
            )
        elif name.strip():
            ids = self._call(
                "Search", self.catalog.find_books_by_name, name.strip(), limit, offset
            )
        else:
            raise cherrypy.HTTPError(400, "Missing name or author")
        return {"page": offset // limit + 1, "page_size": limit, "results": ids}

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def entity(self, type=None, id=None):
        row = self._call("Entity", self.catalog.get_entity, type, _parse_id(id))
        if row is None:
            raise cherrypy.HTTPError(404, "Not found")
        return row

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def entities(self, type=None, page=1, limit=None):
        limit, offset = _parse_paging(page, limit, self.catalog.config)
        rows = self._call("Entities", self.catalog.list_entities, type, limit, offset)
        return {"page": offset // limit + 1, "page_size": limit, "results": rows}

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def metadata(self, id=None):
        return self._call("Metadata", self.catalog.get_book_metadata, _parse_id(id))

    @cherrypy.expose
    @cherrypy.tools.json_out()  # type: ignore[attr-defined]
    @format_result
    def rating(self, id=None):
        return self._call("Rating", self.catalog.get_book_rating, _parse_id(id))


def main():
    cherrypy.config.update(
        {"server.socket_host": "127.0.0.1", "server.socket_port": 8080}
    )
    cherrypy.tree.mount(API(), "/api", {"/": {}})
    try:
        cherrypy.engine.start()
        cherrypy.engine.block()
    except KeyboardInterrupt:
        cherrypy.engine.exit()


if __name__ == "__main__":
    main()
