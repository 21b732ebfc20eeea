"""Services for page_alerter."""

from .core import Core, get_core, shutdown_core
from .metadata import extract_metadata, parse_metadata
from .pipeline import ArchivePipeline
from .scraper import find_latest_item_url
from .url_resolver import resolve_url
from .watcher import FAILURE_THRESHOLD, SourceWatcher

__all__ = [
    "ArchivePipeline",
    "Core",
    "FAILURE_THRESHOLD",
    "SourceWatcher",
    "extract_metadata",
    "find_latest_item_url",
    "get_core",
    "parse_metadata",
    "resolve_url",
    "shutdown_core",
]
