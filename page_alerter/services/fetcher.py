"""HTTP fetch service.

Every outbound request of the core goes through here: crawl pages, item
pages and preview images.
"""

import httpx

from page_alerter.config import get_config
from page_alerter.errors import FetchError
from page_alerter.log_system.unified_logger import UnifiedLogger


async def _get(url: str) -> httpx.Response:
    logger = UnifiedLogger.get_logger(__name__)
    logger.debug(f"Fetching: {url}")

    async with httpx.AsyncClient(
        follow_redirects=True,
        timeout=30.0,
        headers={"User-Agent": get_config().user_agent},
    ) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug(f"Fetch failed for {url}: {e}")
            raise FetchError(url, str(e)) from e

    return response


async def fetch_text(url: str) -> str:
    """Fetch a URL and return the decoded body.

    Raises:
        FetchError: On transport errors or non-2xx responses
    """
    response = await _get(url)
    return response.text


async def fetch_bytes(url: str) -> bytes:
    """Fetch a URL and return the raw body.

    Raises:
        FetchError: On transport errors or non-2xx responses
    """
    response = await _get(url)
    return response.content
