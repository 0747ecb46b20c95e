from .attachments import AttachmentView, get_attachments
from .catalog import Catalog
from .changes import stale_ids
from .constants import FACETS, EntityType, StoreHandle
from .errors import (
    AggregationError,
    CatalogError,
    NoFilterProvidedError,
    StoreUnavailableError,
    UnknownEntityError,
)
from .facets import FacetFilterRequest, find_by_facets
from .registry import REGISTRY, list_all_ids, lookup
from .store import Config, Store

__all__ = [
    "AggregationError",
    "AttachmentView",
    "Catalog",
    "CatalogError",
    "Config",
    "EntityType",
    "FACETS",
    "FacetFilterRequest",
    "NoFilterProvidedError",
    "REGISTRY",
    "Store",
    "StoreHandle",
    "StoreUnavailableError",
    "UnknownEntityError",
    "find_by_facets",
    "get_attachments",
    "list_all_ids",
    "lookup",
    "stale_ids",
]
