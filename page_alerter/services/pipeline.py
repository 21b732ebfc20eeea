"""Archive pipeline.

Turns detected or submitted pages into stored records: verifies sources,
inserts page rows, caches preview images, copies pages into the archive and
deletes pages together with their cached files.
"""

import asyncio
from dataclasses import replace
from typing import Optional

from page_alerter.errors import (
    FetchError,
    InvalidCrawlTargetError,
    NotFoundError,
)
from page_alerter.log_system.unified_logger import UnifiedLogger
from page_alerter.models.schemas import Page, PageMetadata, Source, utcnow
from page_alerter.services.fetcher import fetch_bytes, fetch_text
from page_alerter.services.images import IMAGE_ERRORS, PREVIEW_FILE_NAME, resize_image
from page_alerter.services.metadata import extract_metadata
from page_alerter.services.scraper import find_latest_item_url
from page_alerter.storage import database
from page_alerter.storage.assets import AssetStore

logger = UnifiedLogger.get_logger(__name__)


def page_from_metadata(
    metadata: PageMetadata,
    category: str = "",
    source: Optional[Source] = None,
) -> Page:
    """Build an unsaved Page from extracted metadata."""
    return Page(
        id="",
        source_id=source.id if source else "",
        source_title=source.title if source else "",
        title=metadata.title,
        url=metadata.url,
        description=metadata.description,
        category=category,
        detected_at=utcnow(),
    )


class ArchivePipeline:
    """Stores pages and their cached assets."""

    def __init__(self, assets: AssetStore, preview_max_width: int):
        self.assets = assets
        self.preview_max_width = preview_max_width

    async def find_latest_item(self, source: Source) -> str:
        """Fetch a source's crawl page and locate its latest item.

        Returns:
            Absolute URL of the latest item

        Raises:
            InvalidCrawlTargetError: If the crawl page cannot be fetched
            InvalidSelectorError: If the selector does not yield a link
        """
        try:
            html = await fetch_text(source.crawl_url)
        except FetchError as e:
            raise InvalidCrawlTargetError(source.crawl_url, e.cause) from e

        return find_latest_item_url(html, source.css_selector, source.url)

    async def verify_source(self, source: Source) -> str:
        """Check that a source can be crawled before it is registered."""
        item_url = await self.find_latest_item(source)
        logger.info(f"Verified source '{source.title}': latest item {item_url}")
        return item_url

    async def ingest_detected(self, source: Source, item_url: str) -> Page:
        """Store a newly detected item of a source and move its pointer.

        Raises:
            InvalidRemoteUrlError: If the item page cannot be fetched
        """
        metadata = await extract_metadata(item_url)
        page = page_from_metadata(metadata, category=source.category, source=source)

        stored = await self.insert_page(page, metadata.image_url)
        await database.update_source(source.id, {"last_url": item_url})

        return stored

    async def insert_page(self, page: Page, image_url: str = "") -> Page:
        """Store a page in the live store."""
        return await self._ingest(page, image_url, archived=False)

    async def archive_new_page(self, page: Page, image_url: str = "") -> Page:
        """Store a page directly in the archive store."""
        return await self._ingest(page, image_url, archived=True)

    async def _ingest(self, page: Page, image_url: str, archived: bool) -> Page:
        if page.category:
            await database.insert_category(page.category, ignore_if_exists=True)

        # Row first, so the page survives a failed image step
        if archived:
            page_id = await database.insert_archive_page(page)
        else:
            page_id = await database.insert_page(page)

        image_path = await self.cache_preview(page_id, image_url)
        if image_path:
            await database.update_page(page_id, {"image_path": image_path})

        stored = replace(page, id=page_id, image_path=image_path, archived=archived)
        store_name = "archive" if archived else "live"
        logger.info(
            f"Added a new page to the {store_name} store "
            f"(source: {page.source_id or '-'}): id={page_id} title={page.title!r}"
        )
        return stored

    async def cache_preview(self, page_id: str, image_url: str) -> str:
        """Fetch, resize and store a preview image for a page.

        Returns:
            Stored path relative to the asset root, or "" if there is no image
            or any step failed
        """
        if not image_url:
            return ""

        try:
            data = await fetch_bytes(image_url)
            encoded = await asyncio.to_thread(resize_image, data, self.preview_max_width)
            return await self.assets.write_file(page_id, PREVIEW_FILE_NAME, encoded)
        except FetchError as e:
            logger.warning(f"Could not fetch preview image for page {page_id}: {e.cause}")
        except IMAGE_ERRORS as e:
            logger.warning(f"Could not process preview image for page {page_id}: {e}")

        return ""

    async def archive_page(self, page_id: str) -> Page:
        """Copy a live page into the archive store under a new id.

        The live page is left in place; deleting it is a separate call.

        Raises:
            NotFoundError: If no live page has this id
        """
        page = await database.get_page(page_id, archived=False)
        if page is None:
            raise NotFoundError("page", page_id)

        copy = replace(page, id="", image_path="", is_read=True, archived=True)
        new_id = await database.insert_archive_page(copy)

        image_path = ""
        if page.image_path:
            if await self.assets.exists(page.image_path):
                try:
                    image_path = await self.assets.copy_file(page.image_path, new_id)
                except OSError as e:
                    logger.warning(f"Failed to copy cached image of page {page_id} to {new_id}: {e}")
                else:
                    await database.update_page(new_id, {"image_path": image_path})
            else:
                logger.warning(f"Cached image {page.image_path} of page {page_id} is missing")

        logger.info(f"Archived page {page_id} as {new_id}: title={page.title!r}")
        return replace(copy, id=new_id, image_path=image_path)

    async def delete_page(self, page_id: str) -> None:
        """Delete a page's cached files and its row from either store.

        Raises:
            NotFoundError: If neither store has the page
        """
        page = await database.find_page(page_id)
        if page is None:
            raise NotFoundError("page", page_id)

        try:
            await self.assets.remove_dir(page.id)
        except OSError as e:
            logger.warning(f"Failed to delete cached data of page {page.id}: {e}")

        count = await database.delete_page(page.id)
        if count == 0:
            raise NotFoundError("page", page_id)

        logger.info(f"Deleted page {page_id}")
