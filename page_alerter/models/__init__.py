"""Data models for page_alerter."""

from .schemas import Category, Page, PageFilter, PageMetadata, Source

__all__ = ["Category", "Page", "PageFilter", "PageMetadata", "Source"]
