"""Core service of page_alerter.

The Core owns the watcher of every registered source and keeps that set in
step with source registration, updates and deletion. It is the only place
that adds or removes watchers. All operations the request layer offers go
through here.
"""

import asyncio
from typing import Any, Dict, List, Optional

from page_alerter.config import ServerConfig, get_config
from page_alerter.errors import (
    InvalidFieldError,
    MissingRequiredFieldError,
    NotFoundError,
)
from page_alerter.log_system.unified_logger import UnifiedLogger
from page_alerter.models.schemas import Category, Page, PageFilter, PageMetadata, Source
from page_alerter.services.metadata import extract_metadata
from page_alerter.services.pipeline import ArchivePipeline, page_from_metadata
from page_alerter.services.watcher import SourceWatcher
from page_alerter.storage import database
from page_alerter.storage.assets import AssetStore

REQUIRED_SOURCE_FIELDS = ("title", "url", "crawl_url", "css_selector")

logger = UnifiedLogger.get_logger(__name__)


class Core:
    """Registry of source watchers and entry point for all operations."""

    def __init__(self, config: ServerConfig, assets: Optional[AssetStore] = None):
        self.config = config
        self.assets = assets or AssetStore(config.data_dir)
        self.pipeline = ArchivePipeline(self.assets, config.preview_max_width)
        self.watchers: Dict[str, SourceWatcher] = {}

    async def init(self) -> None:
        """Create a watcher for every stored source."""
        for source in await database.list_sources():
            await self._normalize_cycle(source)
            self.watchers[source.id] = SourceWatcher(source, self.pipeline)

    def start(self) -> None:
        """Start every watcher (disabled sources stay idle)."""
        started = sum(1 for watcher in self.watchers.values() if watcher.start())
        logger.info(f"Started core ({started} of {len(self.watchers)} watchers running)")

    async def shutdown(self) -> None:
        for watcher in self.watchers.values():
            watcher.stop()
        self.watchers.clear()
        logger.info("Stopped core")

    async def _normalize_cycle(self, source: Source) -> None:
        if source.check_cycle_sec > 0:
            return
        source.check_cycle_sec = self.config.default_check_cycle_sec
        await database.update_source(source.id, {"check_cycle_sec": source.check_cycle_sec})

    def _start_watcher(self, source: Source) -> SourceWatcher:
        watcher = SourceWatcher(source, self.pipeline)
        self.watchers[source.id] = watcher
        watcher.start()
        return watcher

    def _discard_watcher(self, source_id: str) -> None:
        watcher = self.watchers.pop(source_id, None)
        if watcher is None:
            logger.warning(f"No watcher registered for source {source_id}")
            return
        watcher.stop()

    def _check_source_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        invalid = [key for key in fields if key not in database.SOURCE_COLUMNS]
        if invalid:
            raise InvalidFieldError(invalid)

        values = dict(fields)
        if "check_cycle_sec" in values:
            cycle = values["check_cycle_sec"]
            if cycle in (None, "", 0):
                values["check_cycle_sec"] = self.config.default_check_cycle_sec
            elif isinstance(cycle, bool) or not isinstance(cycle, int) or cycle < 0:
                raise InvalidFieldError(["check_cycle_sec"])
        if "disabled" in values:
            values["disabled"] = bool(values["disabled"])
        return values

    # --- Sources ---

    async def list_sources(self) -> List[Source]:
        return await database.list_sources()

    async def get_source(self, source_id: str) -> Source:
        source = await database.get_source(source_id)
        if source is None:
            raise NotFoundError("source", source_id)
        return source

    async def insert_source(self, fields: Dict[str, Any]) -> Source:
        """Verify and register a new source, then check it right away.

        Nothing is stored and no watcher is created unless the crawl page can
        be fetched and the selector finds a link on it.

        Raises:
            MissingRequiredFieldError: If a required field is empty
            InvalidFieldError: If a field is unknown or out of range
            InvalidCrawlTargetError: If the crawl page cannot be fetched
            InvalidSelectorError: If the selector does not yield a link
        """
        missing = [name for name in REQUIRED_SOURCE_FIELDS if not fields.get(name)]
        if missing:
            raise MissingRequiredFieldError(missing)

        values = self._check_source_fields(fields)
        values.setdefault("check_cycle_sec", self.config.default_check_cycle_sec)
        source = Source(id="", **values)

        await self.pipeline.verify_source(source)

        source.id = await database.insert_source(source)
        if source.category:
            await database.insert_category(source.category, ignore_if_exists=True)

        watcher = self._start_watcher(source)
        logger.info(f"Inserted source: id={source.id} title={source.title!r} url={source.url}")

        if not source.disabled:
            watcher.check_now()
        return source

    async def update_source(self, source_id: str, fields: Dict[str, Any]) -> Source:
        """Change a source and restart its watcher from the stored record.

        Raises:
            InvalidFieldError: If a field is unknown, immutable or out of range
            NotFoundError: If the source does not exist
        """
        values = self._check_source_fields(fields)
        if not values:
            return await self.get_source(source_id)

        count = await database.update_source(source_id, values)
        if count == 0:
            raise NotFoundError("source", source_id)

        if values.get("category"):
            await database.insert_category(values["category"], ignore_if_exists=True)

        source = await self.get_source(source_id)
        self._discard_watcher(source_id)
        self._start_watcher(source)

        logger.info(f"Updated source {source_id}: {sorted(values)}")
        return source

    async def delete_source(self, source_id: str, delete_pages: bool = False) -> int:
        """Delete a source and stop its watcher.

        Args:
            source_id: ID of the source
            delete_pages: Also delete the source's live pages and their files

        Returns:
            Number of pages deleted

        Raises:
            NotFoundError: If the source does not exist
        """
        if await database.get_source(source_id) is None:
            raise NotFoundError("source", source_id)

        deleted_pages = 0
        if delete_pages:
            for page in await database.list_pages(PageFilter(source_id=source_id)):
                await self.pipeline.delete_page(page.id)
                deleted_pages += 1

        if await database.delete_source(source_id) == 0:
            raise NotFoundError("source", source_id)
        self._discard_watcher(source_id)

        logger.info(f"Deleted source {source_id} ({deleted_pages} pages)")
        return deleted_pages

    async def check_source(self, source_id: str) -> bool:
        """Run one check of a source now and wait for it.

        Returns:
            True if a new item was ingested
        """
        watcher = self.watchers.get(source_id)
        if watcher is None:
            raise NotFoundError("source", source_id)
        return await watcher.check()

    # --- Pages ---

    async def list_pages(self, page_filter: Optional[PageFilter] = None, archived: bool = False) -> List[Page]:
        return await database.list_pages(page_filter, archived=archived)

    async def get_page(self, page_id: str) -> Page:
        page = await database.find_page(page_id)
        if page is None:
            raise NotFoundError("page", page_id)
        return page

    async def fetch_page_info(self, url: str) -> PageMetadata:
        """Extract metadata of a URL without storing anything."""
        if not url:
            raise MissingRequiredFieldError(["url"])
        return await extract_metadata(url)

    async def insert_page(self, url: str, category: str = "") -> Page:
        """Store a page submitted by URL in the live store."""
        metadata = await self.fetch_page_info(url)
        page = page_from_metadata(metadata, category=category)
        return await self.pipeline.insert_page(page, metadata.image_url)

    async def archive_new_page(self, url: str, category: str = "") -> Page:
        """Store a page submitted by URL directly in the archive store."""
        metadata = await self.fetch_page_info(url)
        page = page_from_metadata(metadata, category=category)
        return await self.pipeline.archive_new_page(page, metadata.image_url)

    async def archive_page(self, page_id: str) -> Page:
        return await self.pipeline.archive_page(page_id)

    async def read_page(self, page_id: str, set_unread: bool = False) -> None:
        """Mark a page (live or archived) as read, or unread."""
        count = await database.update_page(page_id, {"is_read": not set_unread})
        if count == 0:
            raise NotFoundError("page", page_id)

    async def delete_page(self, page_id: str) -> None:
        await self.pipeline.delete_page(page_id)

    # --- Categories ---

    async def list_categories(self, name: str = "", with_sub: bool = False) -> List[Category]:
        """List categories.

        An empty name lists all of them; otherwise the named category, and
        with ``with_sub`` its descendants too.
        """
        if not name:
            return await database.list_categories()
        if with_sub:
            return await database.list_categories_with_prefix(name)
        category = await database.get_category(name)
        return [category] if category else []

    async def add_category(self, name: str) -> Category:
        """Register a category.

        Raises:
            AlreadyExistsError: If the name is already registered
        """
        if not name:
            raise MissingRequiredFieldError(["name"])
        await database.insert_category(name, ignore_if_exists=False)
        return Category(name=name)

    async def delete_category(self, name: str) -> None:
        if await database.delete_category(name) == 0:
            raise NotFoundError("category", name)


# Singleton core
_core: Optional[Core] = None
# Created on first use, reset by shutdown_core
_core_lock: Optional[asyncio.Lock] = None


async def get_core() -> Core:
    """Get or create the process-wide Core (watchers loaded, not started)."""
    global _core, _core_lock

    if _core is not None:
        return _core

    if _core_lock is None:
        _core_lock = asyncio.Lock()

    async with _core_lock:
        if _core is None:
            core = Core(get_config())
            await core.init()
            _core = core

    return _core


async def shutdown_core() -> None:
    global _core, _core_lock

    if _core is not None:
        await _core.shutdown()
        _core = None
    _core_lock = None
