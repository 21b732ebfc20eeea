"""Link resolution relative to a source's base URL."""

import re
from urllib.parse import urljoin

# Scheme prefix ("https://") or protocol-relative ("//")
_ABSOLUTE_URL = re.compile(r"^(?:[a-z][a-z0-9+.\-]*:)?//", re.IGNORECASE)


def is_absolute_url(link: str) -> bool:
    return bool(_ABSOLUTE_URL.match(link))


def resolve_url(link: str, base_url: str) -> str:
    """Resolve a link found on a crawl page into an absolute URL.

    Absolute links pass through unchanged; everything else is joined onto
    ``base_url``.

    Args:
        link: href value as found in the document
        base_url: Base URL of the source

    Returns:
        Absolute URL

    Raises:
        ValueError: If the link cannot be joined (e.g. a malformed host)
    """
    link = link.strip()
    if is_absolute_url(link):
        return link
    return urljoin(base_url, link)
