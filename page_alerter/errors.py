"""Error types for page_alerter.

Every error raised across the core surface carries a kind tag and the context
fields (ids, URLs, selectors) that produced it, so callers can branch on
``kind`` instead of parsing messages.
"""

from enum import Enum
from typing import Any, Dict, List


class ErrorKind(str, Enum):
    """Classification of core errors."""

    NOT_FOUND = "not_found"
    INVALID_CRAWL_TARGET = "invalid_crawl_target"
    INVALID_SELECTOR = "invalid_selector"
    INVALID_REMOTE_URL = "invalid_remote_url"
    ALREADY_EXISTS = "already_exists"
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_FIELD = "invalid_field"


class PageAlerterError(Exception):
    """Base class for errors reported by the core."""

    kind: ErrorKind

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for the request layer."""
        return {
            "success": False,
            "error": str(self),
            "kind": self.kind.value,
            **self.context,
        }


class NotFoundError(PageAlerterError):
    """A source, page or category is absent from the store."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity.capitalize()} not found: {key}", entity=entity, key=key)
        self.entity = entity
        self.key = key


class InvalidCrawlTargetError(PageAlerterError):
    """The crawl page of a source could not be fetched."""

    kind = ErrorKind.INVALID_CRAWL_TARGET

    def __init__(self, url: str, cause: str):
        super().__init__(f"Invalid crawl URL: {url}", url=url, cause=cause)
        self.url = url
        self.cause = cause


class InvalidSelectorError(PageAlerterError):
    """The selector rule did not lead to a usable link."""

    kind = ErrorKind.INVALID_SELECTOR

    def __init__(self, selector: str, reason: str):
        super().__init__(f"Invalid CSS selector: {selector}", selector=selector, reason=reason)
        self.selector = selector
        self.reason = reason


class InvalidRemoteUrlError(PageAlerterError):
    """A page whose metadata was requested could not be fetched."""

    kind = ErrorKind.INVALID_REMOTE_URL

    def __init__(self, url: str, cause: str):
        super().__init__(f"Invalid page URL: {url}", url=url, cause=cause)
        self.url = url
        self.cause = cause


class AlreadyExistsError(PageAlerterError):
    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity.capitalize()} already exists: {key}", entity=entity, key=key)
        self.entity = entity
        self.key = key


class MissingRequiredFieldError(PageAlerterError):
    kind = ErrorKind.MISSING_REQUIRED_FIELD

    def __init__(self, fields: List[str]):
        super().__init__(f"Missing required fields ({', '.join(fields)})", fields=list(fields))
        self.fields = list(fields)


class InvalidFieldError(PageAlerterError):
    """Unknown, immutable or out-of-range fields in an update."""

    kind = ErrorKind.INVALID_FIELD

    def __init__(self, fields: List[str]):
        super().__init__(f"Invalid fields ({', '.join(fields)})", fields=list(fields))
        self.fields = list(fields)


class FetchError(Exception):
    """Transport-level failure raised by the fetcher.

    Never crosses the core surface: callers translate it into one of the
    classified errors above.
    """

    def __init__(self, url: str, cause: str):
        super().__init__(f"Failed to fetch {url}: {cause}")
        self.url = url
        self.cause = cause
