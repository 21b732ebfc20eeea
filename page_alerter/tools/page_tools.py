"""Page alerter MCP tools.

This module provides MCP tools for managing watched sources, detected pages,
the archive and categories. Errors raised by the core are turned into
``success: False`` payloads by the exception_handler decorator.

NOTE: Never use Optional parameters in MCP tools - they break MCP clients.
Use empty string "" for optional strings and 0 for optional integers.
"""

from typing import Any, Dict

from mcp.server.fastmcp import Context

from page_alerter.errors import InvalidFieldError
from page_alerter.models.schemas import PageFilter
from page_alerter.services.core import get_core


async def list_sources(ctx: Context = None) -> Dict[str, Any]:
    """List all watched sources.

    Args:
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of sources
        - sources: list of source objects with id, title, url, crawl_url,
          css_selector, last_url, category, check_cycle_sec, disabled
    """
    core = await get_core()
    sources = await core.list_sources()

    return {
        "success": True,
        "count": len(sources),
        "sources": [source.to_dict() for source in sources],
    }


async def add_source(
    title: str,
    url: str,
    crawl_url: str,
    css_selector: str,
    category: str = "",
    check_cycle_sec: int = 0,
    ctx: Context = None,
) -> Dict[str, Any]:
    """Register a web site to watch for new items.

    The crawl page is fetched and the selector applied before anything is
    stored; the source is then checked immediately so its current latest item
    is captured.

    Args:
        title: Display name of the site
        url: Base URL used to resolve relative item links
        crawl_url: Page listing the site's newest items
        css_selector: CSS selector of the element linking to the latest item
        category: Category path like "news/tech" (empty string for none)
        check_cycle_sec: Seconds between checks (0 uses the configured default)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - source: the stored source
        - error, kind: if verification failed (invalid_crawl_target,
          invalid_selector, missing_required_field)
    """
    core = await get_core()
    source = await core.insert_source({
        "title": title,
        "url": url,
        "crawl_url": crawl_url,
        "css_selector": css_selector,
        "category": category,
        "check_cycle_sec": check_cycle_sec,
    })

    return {"success": True, "source": source.to_dict()}


async def update_source(
    source_id: str,
    title: str = "",
    url: str = "",
    crawl_url: str = "",
    css_selector: str = "",
    category: str = "",
    check_cycle_sec: int = 0,
    disabled: str = "",
    ctx: Context = None,
) -> Dict[str, Any]:
    """Change settings of a watched source and restart its watcher.

    Only non-empty arguments are applied.

    Args:
        source_id: ID of the source (from list_sources)
        title: New display name
        url: New base URL
        crawl_url: New crawl page URL
        css_selector: New latest-item selector
        category: New category path
        check_cycle_sec: New check interval in seconds (0 leaves it unchanged)
        disabled: "true" to disable, "false" to re-enable (empty leaves it)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - source: the updated source
        - error, kind: if the source was not found or a value is invalid
    """
    fields: Dict[str, Any] = {
        name: value
        for name, value in (
            ("title", title),
            ("url", url),
            ("crawl_url", crawl_url),
            ("css_selector", css_selector),
            ("category", category),
            ("check_cycle_sec", check_cycle_sec),
        )
        if value
    }
    if disabled:
        flag = disabled.strip().lower()
        if flag not in ("true", "false"):
            raise InvalidFieldError(["disabled"])
        fields["disabled"] = flag == "true"

    core = await get_core()
    source = await core.update_source(source_id, fields)

    return {"success": True, "source": source.to_dict()}


async def remove_source(source_id: str, delete_pages: bool = False, ctx: Context = None) -> Dict[str, Any]:
    """Stop watching a source and delete it.

    Args:
        source_id: ID of the source (from list_sources)
        delete_pages: Also delete the source's unarchived pages
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - pages_deleted: count of pages removed
        - error, kind: if the source was not found
    """
    core = await get_core()
    deleted = await core.delete_source(source_id, delete_pages)

    return {
        "success": True,
        "message": f"Removed source '{source_id}'",
        "pages_deleted": deleted,
    }


async def check_source(source_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Check a source for a new item right now.

    Args:
        source_id: ID of the source (from list_sources)
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - new_item: whether a new page was added
        - failure_count: consecutive failed checks of this source
    """
    core = await get_core()
    new_item = await core.check_source(source_id)

    return {
        "success": True,
        "new_item": new_item,
        "failure_count": core.watchers[source_id].failure_count
        if source_id in core.watchers
        else 0,
    }


async def list_pages(
    only_unread: bool = False,
    category: str = "",
    with_subcategories: bool = False,
    source_id: str = "",
    offset: int = 0,
    limit: int = 50,
    before_id: str = "",
    archived: bool = False,
    ctx: Context = None,
) -> Dict[str, Any]:
    """List detected pages or archived pages, newest first.

    Args:
        only_unread: Only pages not marked read
        category: Filter by category (empty string for all)
        with_subcategories: Include pages in descendant categories ("news" also
          matches "news/tech")
        source_id: Filter by source (empty string for all)
        offset: Number of pages to skip
        limit: Maximum number of pages to return (0 for no limit)
        before_id: Only pages older than this page (for paging)
        archived: List the archive instead of the live pages
        ctx: MCP Context object (injected automatically)

    Returns:
        Dictionary with:
        - success: bool
        - count: number of pages returned
        - pages: list of page objects
    """
    page_filter = PageFilter(
        only_unread=only_unread,
        category=category,
        with_subcategories=with_subcategories,
        source_id=source_id,
        offset=offset,
        limit=limit,
        before_id=before_id or None,
    )

    core = await get_core()
    pages = await core.list_pages(page_filter, archived=archived)

    return {
        "success": True,
        "count": len(pages),
        "pages": [page.to_dict() for page in pages],
    }


async def get_page_info(url: str, ctx: Context = None) -> Dict[str, Any]:
    """Preview the title, canonical URL, image and description of a page.

    Nothing is stored.

    Args:
        url: URL of the page
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    metadata = await core.fetch_page_info(url)

    return {"success": True, "page": metadata.to_dict()}


async def submit_page(url: str, category: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Add a page by URL to the unread pages.

    Args:
        url: URL of the page
        category: Category path (empty string for none)
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    page = await core.insert_page(url, category)

    return {"success": True, "page": page.to_dict()}


async def archive_page(page_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Copy a page into the archive, marked read.

    The original stays in the page list until deleted with delete_page.

    Args:
        page_id: ID of a live page (from list_pages)
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    page = await core.archive_page(page_id)

    return {"success": True, "page": page.to_dict()}


async def archive_new_page(url: str, category: str = "", ctx: Context = None) -> Dict[str, Any]:
    """Add a page by URL straight to the archive.

    Args:
        url: URL of the page
        category: Category path (empty string for none)
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    page = await core.archive_new_page(url, category)

    return {"success": True, "page": page.to_dict()}


async def read_page(page_id: str, set_unread: bool = False, ctx: Context = None) -> Dict[str, Any]:
    """Mark a page as read (or unread again).

    Args:
        page_id: ID of the page (live or archived)
        set_unread: Mark as unread instead
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    await core.read_page(page_id, set_unread)

    return {"success": True, "page_id": page_id, "is_read": not set_unread}


async def delete_page(page_id: str, ctx: Context = None) -> Dict[str, Any]:
    """Delete a page and its cached image, from the page list or the archive.

    Args:
        page_id: ID of the page
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    await core.delete_page(page_id)

    return {"success": True, "message": f"Deleted page '{page_id}'"}


async def list_categories(name: str = "", with_sub: bool = False, ctx: Context = None) -> Dict[str, Any]:
    """List registered categories.

    Args:
        name: Category to look up (empty string lists all)
        with_sub: Include descendants of ``name``
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    categories = await core.list_categories(name, with_sub)

    return {
        "success": True,
        "count": len(categories),
        "categories": [category.name for category in categories],
    }


async def add_category(name: str, ctx: Context = None) -> Dict[str, Any]:
    """Register a category.

    Args:
        name: Category path like "news/tech"
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    category = await core.add_category(name)

    return {"success": True, "category": category.name}


async def delete_category(name: str, ctx: Context = None) -> Dict[str, Any]:
    """Delete a category. Sources and pages using it are not changed.

    Args:
        name: Category name
        ctx: MCP Context object (injected automatically)
    """
    core = await get_core()
    await core.delete_category(name)

    return {"success": True, "message": f"Deleted category '{name}'"}


# List of page tools for registration
page_tools = [
    list_sources,
    add_source,
    update_source,
    remove_source,
    check_source,
    list_pages,
    get_page_info,
    submit_page,
    archive_page,
    archive_new_page,
    read_page,
    delete_page,
    list_categories,
    add_category,
    delete_category,
]
