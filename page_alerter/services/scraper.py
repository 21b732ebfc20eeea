"""HTML scraper service.

This module locates the "latest item" link on a crawl page using a CSS
selector.
"""

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from page_alerter.errors import InvalidSelectorError
from page_alerter.services.url_resolver import resolve_url


def find_latest_item_url(html: str, css_selector: str, base_url: str) -> str:
    """Find the link to the newest item on a crawl page.

    The first element matching the selector is used. If it is an ``<a>`` tag
    its ``href`` is taken, otherwise the first ``<a>`` inside it.

    Args:
        html: Markup of the crawl page
        css_selector: CSS selector identifying the latest item
        base_url: Base URL used to resolve relative links

    Returns:
        Absolute URL of the latest item

    Raises:
        InvalidSelectorError: If nothing matches, the match has no link, or
            the selector or link is malformed
    """
    soup = BeautifulSoup(html, "lxml")

    try:
        element = soup.select_one(css_selector)
    except (SelectorSyntaxError, ValueError) as e:
        raise InvalidSelectorError(css_selector, f"malformed selector: {e}") from e

    if element is None:
        raise InvalidSelectorError(css_selector, "no element matched")

    # Find the link - either the element itself or a child <a> tag
    link = element if element.name == "a" else element.find("a")
    if link is None:
        raise InvalidSelectorError(css_selector, "matched element has no link")

    href = (link.get("href") or "").strip()
    if not href or href.startswith("#") or href.startswith("javascript:"):
        raise InvalidSelectorError(css_selector, "matched link has no usable href")

    try:
        return resolve_url(href, base_url)
    except ValueError as e:
        raise InvalidSelectorError(css_selector, f"malformed link {href!r}: {e}") from e
