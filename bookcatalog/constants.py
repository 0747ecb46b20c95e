from enum import Enum


class StoreHandle(str, Enum):
    CATALOG = "catalog"
    METADATA = "metadata"


class EntityType(str, Enum):
    BOOK = "book"
    CATEGORY = "category"
    TAG = "tag"
    AUTHOR = "author"
    PUBLISHER = "publisher"
    TRANSLATOR = "translator"


# Fixed facet order used by the composer and the aggregator.
FACETS = (
    EntityType.CATEGORY,
    EntityType.TAG,
    EntityType.AUTHOR,
    EntityType.TRANSLATOR,
    EntityType.PUBLISHER,
)


# Request keys accepted by FacetFilterRequest.from_mapping
FACET_REQUEST_KEYS = {
    "category_ids": EntityType.CATEGORY,
    "tag_ids": EntityType.TAG,
    "author_ids": EntityType.AUTHOR,
    "translator_ids": EntityType.TRANSLATOR,
    "publisher_ids": EntityType.PUBLISHER,
}


# AttachmentView field per facet
ATTACHMENT_FIELDS = {
    EntityType.CATEGORY: "categories",
    EntityType.TAG: "tags",
    EntityType.AUTHOR: "authors",
    EntityType.TRANSLATOR: "translators",
    EntityType.PUBLISHER: "publishers",
}
