"""Storage layer for page_alerter."""

from .assets import AssetStore
from .database import (
    get_database,
    init_database,
    close_database,
    list_sources,
    get_source,
    insert_source,
    update_source,
    delete_source,
    list_pages,
    get_page,
    find_page,
    insert_page,
    insert_archive_page,
    update_page,
    delete_page,
    get_category,
    list_categories,
    list_categories_with_prefix,
    insert_category,
    delete_category,
)

__all__ = [
    "AssetStore",
    "get_database",
    "init_database",
    "close_database",
    "list_sources",
    "get_source",
    "insert_source",
    "update_source",
    "delete_source",
    "list_pages",
    "get_page",
    "find_page",
    "insert_page",
    "insert_archive_page",
    "update_page",
    "delete_page",
    "get_category",
    "list_categories",
    "list_categories_with_prefix",
    "insert_category",
    "delete_category",
]
