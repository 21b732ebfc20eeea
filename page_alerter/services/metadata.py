"""Page metadata extraction.

This module derives a normalized record (title, canonical URL, preview image,
description) from a page's Open Graph tags.
"""

from typing import Optional

from bs4 import BeautifulSoup

from page_alerter.errors import FetchError, InvalidRemoteUrlError
from page_alerter.log_system.unified_logger import UnifiedLogger
from page_alerter.models.schemas import PageMetadata
from page_alerter.services.fetcher import fetch_text
from page_alerter.services.url_resolver import resolve_url


def _og_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": f"og:{prop}"})
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


def parse_metadata(html: str, url: str) -> PageMetadata:
    """Build a PageMetadata record from page markup.

    Args:
        html: Markup of the page
        url: URL the markup was fetched from

    Returns:
        PageMetadata with fallbacks applied
    """
    soup = BeautifulSoup(html, "lxml")

    title = _og_content(soup, "title")
    if title is None:
        title = soup.title.get_text(strip=True) if soup.title else ""

    image_url = _og_content(soup, "image") or ""
    if image_url:
        try:
            image_url = resolve_url(image_url, url)
        except ValueError:
            image_url = ""

    return PageMetadata(
        title=title,
        url=_og_content(soup, "url") or url,
        image_url=image_url,
        description=_og_content(soup, "description") or "",
    )


async def extract_metadata(url: str) -> PageMetadata:
    """Fetch a page and extract its metadata.

    Args:
        url: URL of the page

    Returns:
        PageMetadata for the page

    Raises:
        InvalidRemoteUrlError: If the page cannot be fetched
    """
    logger = UnifiedLogger.get_logger(__name__)
    logger.info(f"Extracting metadata: {url}")

    try:
        html = await fetch_text(url)
    except FetchError as e:
        raise InvalidRemoteUrlError(url, e.cause) from e

    return parse_metadata(html, url)
