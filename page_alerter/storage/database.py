"""Database storage for page_alerter.

This module provides async SQLite database operations for sources, pages and
categories. Live pages and archived pages are kept in two separate tables;
id-keyed page operations try the live table first, then the archive table.
Database location: ``ServerConfig.db_path`` (or PAGE_ALERTER_DB_PATH env var)
"""

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosqlite

from page_alerter.config import get_config
from page_alerter.errors import AlreadyExistsError
from page_alerter.models.schemas import Category, Page, PageFilter, Source

LIVE_TABLE = "pages"
ARCHIVE_TABLE = "archived_pages"

# Columns that may be changed through update_source / update_page
SOURCE_COLUMNS = (
    "title",
    "url",
    "crawl_url",
    "css_selector",
    "last_url",
    "category",
    "check_cycle_sec",
    "disabled",
)
PAGE_COLUMNS = (
    "source_id",
    "source_title",
    "title",
    "url",
    "image_path",
    "description",
    "category",
    "detected_at",
    "is_read",
)


def _get_db_path() -> Path:
    return Path(get_config().db_path)


def new_id() -> str:
    """Generate a new record id, unique across both page tables."""
    return uuid.uuid4().hex


# Singleton connection
_db_connection: Optional[aiosqlite.Connection] = None


async def get_database() -> aiosqlite.Connection:
    """Get or create a singleton database connection.

    Returns:
        Active database connection
    """
    global _db_connection

    if _db_connection is None:
        db_path = _get_db_path()
        # Ensure directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)

        _db_connection = await aiosqlite.connect(db_path)
        _db_connection.row_factory = aiosqlite.Row
        await init_database(_db_connection)

    return _db_connection


async def init_database(db: Optional[aiosqlite.Connection] = None) -> None:
    """Initialize database tables if they don't exist.

    Args:
        db: Optional database connection (uses singleton if not provided)
    """
    if db is None:
        db = await get_database()

    await db.execute("""
        CREATE TABLE IF NOT EXISTS sources (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            url TEXT NOT NULL,
            crawl_url TEXT NOT NULL,
            css_selector TEXT NOT NULL,
            last_url TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '',
            check_cycle_sec INTEGER NOT NULL DEFAULT 0,
            disabled BOOLEAN NOT NULL DEFAULT FALSE
        )
    """)

    for table in (LIVE_TABLE, ARCHIVE_TABLE):
        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id TEXT PRIMARY KEY,
                source_id TEXT NOT NULL DEFAULT '',
                source_title TEXT NOT NULL DEFAULT '',
                title TEXT NOT NULL DEFAULT '',
                url TEXT NOT NULL,
                image_path TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                category TEXT NOT NULL DEFAULT '',
                detected_at TIMESTAMP NOT NULL,
                is_read BOOLEAN NOT NULL DEFAULT FALSE
            )
        """)

        await db.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_detected_at ON {table}(detected_at)
        """)

        await db.execute(f"""
            CREATE INDEX IF NOT EXISTS idx_{table}_source_id ON {table}(source_id)
        """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS categories (
            name TEXT PRIMARY KEY
        )
    """)

    await db.commit()


def _row_to_source(row: aiosqlite.Row) -> Source:
    return Source(
        id=row["id"],
        title=row["title"],
        url=row["url"],
        crawl_url=row["crawl_url"],
        css_selector=row["css_selector"],
        last_url=row["last_url"],
        category=row["category"],
        check_cycle_sec=row["check_cycle_sec"],
        disabled=bool(row["disabled"]),
    )


def _row_to_page(row: aiosqlite.Row, archived: bool) -> Page:
    return Page(
        id=row["id"],
        source_id=row["source_id"],
        source_title=row["source_title"],
        title=row["title"],
        url=row["url"],
        image_path=row["image_path"],
        description=row["description"],
        category=row["category"],
        detected_at=datetime.fromisoformat(row["detected_at"]),
        is_read=bool(row["is_read"]),
        archived=archived,
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _category_condition(column: str, name: str, with_sub: bool) -> tuple:
    """Build a WHERE fragment matching a category, optionally with descendants.

    ``news`` with descendants matches ``news`` and ``news/...`` but never
    ``newsletter``.
    """
    if not with_sub:
        return f"{column} = ?", [name]
    return (
        f"({column} = ? OR {column} LIKE ? ESCAPE '\\')",
        [name, _escape_like(name.rstrip("/")) + "/%"],
    )


def _serialize(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            value = value.isoformat()
        values[key] = value
    return values


# --- Sources ---


async def list_sources() -> List[Source]:
    """List all sources ordered by title."""
    db = await get_database()

    cursor = await db.execute("SELECT * FROM sources ORDER BY title, id")

    sources = []
    async for row in cursor:
        sources.append(_row_to_source(row))

    return sources


async def get_source(source_id: str) -> Optional[Source]:
    """Get a source by id.

    Returns:
        Source object if found, None otherwise
    """
    db = await get_database()

    cursor = await db.execute("SELECT * FROM sources WHERE id = ?", (source_id,))
    row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_source(row)


async def insert_source(source: Source) -> str:
    """Insert a source, assigning a new id if it has none.

    Returns:
        The id of the stored source
    """
    db = await get_database()

    source_id = source.id or new_id()
    await db.execute(
        """
        INSERT INTO sources (id, title, url, crawl_url, css_selector,
                             last_url, category, check_cycle_sec, disabled)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            source_id,
            source.title,
            source.url,
            source.crawl_url,
            source.css_selector,
            source.last_url,
            source.category,
            source.check_cycle_sec,
            source.disabled,
        ),
    )
    await db.commit()

    return source_id


async def update_source(source_id: str, fields: Dict[str, Any]) -> int:
    """Update columns of a source.

    Args:
        source_id: ID of the source
        fields: Column -> value mapping (keys from SOURCE_COLUMNS)

    Returns:
        Number of rows updated (0 if not found)

    Raises:
        ValueError: If a key is not an updatable column
    """
    unknown = [key for key in fields if key not in SOURCE_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown source columns: {', '.join(unknown)}")
    if not fields:
        return 0

    db = await get_database()

    assignments = ", ".join(f"{key} = ?" for key in fields)
    cursor = await db.execute(
        f"UPDATE sources SET {assignments} WHERE id = ?",
        list(_serialize(fields).values()) + [source_id],
    )
    await db.commit()

    return cursor.rowcount


async def delete_source(source_id: str) -> int:
    """Delete a source row. Pages are left to the caller.

    Returns:
        Number of rows deleted
    """
    db = await get_database()

    cursor = await db.execute("DELETE FROM sources WHERE id = ?", (source_id,))
    await db.commit()

    return cursor.rowcount


# --- Pages ---


async def list_pages(page_filter: Optional[PageFilter] = None, archived: bool = False) -> List[Page]:
    """List pages from the live or archive table, newest first.

    Args:
        page_filter: Optional filters and pagination
        archived: Read from the archive table instead of the live one

    Returns:
        List of Page objects
    """
    page_filter = page_filter or PageFilter()
    table = ARCHIVE_TABLE if archived else LIVE_TABLE
    db = await get_database()

    query = f"SELECT * FROM {table} WHERE 1=1"
    params: List = []

    if page_filter.only_unread:
        query += " AND is_read = 0"

    if page_filter.category:
        condition, values = _category_condition(
            "category", page_filter.category, page_filter.with_subcategories
        )
        query += f" AND {condition}"
        params.extend(values)

    if page_filter.source_id:
        query += " AND source_id = ?"
        params.append(page_filter.source_id)

    if page_filter.before_id:
        query += f" AND (detected_at, id) < (SELECT detected_at, id FROM {table} WHERE id = ?)"
        params.append(page_filter.before_id)

    query += " ORDER BY detected_at DESC, id DESC LIMIT ? OFFSET ?"
    params.append(page_filter.limit if page_filter.limit > 0 else -1)
    params.append(max(page_filter.offset, 0))

    cursor = await db.execute(query, params)

    pages = []
    async for row in cursor:
        pages.append(_row_to_page(row, archived))

    return pages


async def get_page(page_id: str, archived: bool = False) -> Optional[Page]:
    """Get a page from one table by id."""
    table = ARCHIVE_TABLE if archived else LIVE_TABLE
    db = await get_database()

    cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (page_id,))
    row = await cursor.fetchone()

    if row is None:
        return None

    return _row_to_page(row, archived)


async def find_page(page_id: str) -> Optional[Page]:
    """Get a page from whichever table holds it (live first)."""
    page = await get_page(page_id, archived=False)
    if page is None:
        page = await get_page(page_id, archived=True)
    return page


async def _insert_page(table: str, page: Page) -> str:
    db = await get_database()

    page_id = page.id or new_id()
    await db.execute(
        f"""
        INSERT INTO {table} (id, source_id, source_title, title, url, image_path,
                             description, category, detected_at, is_read)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            page_id,
            page.source_id,
            page.source_title,
            page.title,
            page.url,
            page.image_path,
            page.description,
            page.category,
            page.detected_at.isoformat(),
            page.is_read,
        ),
    )
    await db.commit()

    return page_id


async def insert_page(page: Page) -> str:
    """Insert a page into the live table.

    Returns:
        The id of the stored page
    """
    return await _insert_page(LIVE_TABLE, page)


async def insert_archive_page(page: Page) -> str:
    """Insert a page into the archive table.

    Returns:
        The id of the stored page
    """
    return await _insert_page(ARCHIVE_TABLE, page)


async def update_page(page_id: str, fields: Dict[str, Any]) -> int:
    """Update a page in the live table, else in the archive table.

    Returns:
        Number of rows updated (0 if found in neither table)

    Raises:
        ValueError: If a key is not an updatable column
    """
    unknown = [key for key in fields if key not in PAGE_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown page columns: {', '.join(unknown)}")
    if not fields:
        return 0

    db = await get_database()

    assignments = ", ".join(f"{key} = ?" for key in fields)
    params = list(_serialize(fields).values()) + [page_id]

    count = 0
    for table in (LIVE_TABLE, ARCHIVE_TABLE):
        cursor = await db.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)
        count = cursor.rowcount
        if count:
            break
    await db.commit()

    return count


async def delete_page(page_id: str) -> int:
    """Delete a page from the live table, else from the archive table.

    Returns:
        Number of rows deleted (0 if found in neither table)
    """
    db = await get_database()

    count = 0
    for table in (LIVE_TABLE, ARCHIVE_TABLE):
        cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (page_id,))
        count = cursor.rowcount
        if count:
            break
    await db.commit()

    return count


# --- Categories ---


async def get_category(name: str) -> Optional[Category]:
    db = await get_database()

    cursor = await db.execute("SELECT name FROM categories WHERE name = ?", (name,))
    row = await cursor.fetchone()

    if row is None:
        return None

    return Category(name=row["name"])


async def list_categories() -> List[Category]:
    db = await get_database()

    cursor = await db.execute("SELECT name FROM categories ORDER BY name")

    return [Category(name=row["name"]) async for row in cursor]


async def list_categories_with_prefix(name: str) -> List[Category]:
    """List a category and all of its descendants."""
    db = await get_database()

    condition, params = _category_condition("name", name, with_sub=True)
    cursor = await db.execute(
        f"SELECT name FROM categories WHERE {condition} ORDER BY name", params
    )

    return [Category(name=row["name"]) async for row in cursor]


async def insert_category(name: str, ignore_if_exists: bool = False) -> bool:
    """Register a category name.

    Args:
        name: Category name
        ignore_if_exists: Treat an existing name as success

    Returns:
        True if a new row was inserted, False if it already existed

    Raises:
        AlreadyExistsError: If the name exists and ignore_if_exists is False
    """
    db = await get_database()

    cursor = await db.execute(
        "INSERT OR IGNORE INTO categories (name) VALUES (?)", (name,)
    )
    await db.commit()

    if cursor.rowcount == 0:
        if not ignore_if_exists:
            raise AlreadyExistsError("category", name)
        return False

    return True


async def delete_category(name: str) -> int:
    """Delete a category record. Sources and pages keep their values."""
    db = await get_database()

    cursor = await db.execute("DELETE FROM categories WHERE name = ?", (name,))
    await db.commit()

    return cursor.rowcount


async def close_database() -> None:
    """Close the database connection."""
    global _db_connection

    if _db_connection is not None:
        await _db_connection.close()
        _db_connection = None
