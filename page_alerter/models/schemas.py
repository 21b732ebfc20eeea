"""Data models for page_alerter.

This module defines the core data structures for sources, pages and
categories.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Source:
    """Represents a monitored web site."""

    id: str
    title: str
    url: str
    crawl_url: str
    css_selector: str
    last_url: str = ""
    category: str = ""
    check_cycle_sec: int = 0
    disabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Page:
    """Represents a detected or submitted page, live or archived."""

    id: str
    source_id: str
    source_title: str
    title: str
    url: str
    image_path: str = ""
    description: str = ""
    category: str = ""
    detected_at: datetime = field(default_factory=utcnow)
    is_read: bool = False
    archived: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["detected_at"] = self.detected_at.isoformat()
        return data


@dataclass
class PageMetadata:
    """Normalized metadata extracted from a page's social tags."""

    title: str
    url: str
    image_url: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Category:
    name: str


@dataclass
class PageFilter:
    """Filters for listing pages.

    Pagination is by ``offset`` or by ``before_id`` (pages strictly older than
    the given page). ``limit`` of 0 means no limit.
    """

    only_unread: bool = False
    category: str = ""
    with_subcategories: bool = False
    source_id: str = ""
    offset: int = 0
    limit: int = 0
    before_id: Optional[str] = None
