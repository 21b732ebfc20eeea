"""Unit tests for the Core watcher registry and its operations."""

import asyncio

import pytest

from page_alerter.errors import (
    AlreadyExistsError,
    InvalidCrawlTargetError,
    InvalidFieldError,
    InvalidSelectorError,
    MissingRequiredFieldError,
    NotFoundError,
)
from page_alerter.models.schemas import PageFilter, Source
from page_alerter.services.core import Core, get_core, shutdown_core
from page_alerter.storage import database
from tests.helpers import article_html, crawl_html


# Mark all tests as async
pytestmark = pytest.mark.anyio

CRAWL_URL = "https://example.com/blog"
ITEM_URL = "https://example.com/post/1"

SOURCE_FIELDS = {
    "title": "Example",
    "url": "https://example.com/",
    "crawl_url": CRAWL_URL,
    "css_selector": "ul.posts li a",
    "category": "news/tech",
}


@pytest.fixture
async def core(config, assets, in_memory_db):
    instance = Core(config, assets)
    yield instance
    await instance.shutdown()


@pytest.fixture
def site(http_routes):
    http_routes[CRAWL_URL] = crawl_html("/post/1")
    http_routes[ITEM_URL] = article_html(title="Post one")
    return http_routes


async def settle(core: Core, source_id: str) -> None:
    """Wait until the watcher's immediate check has run."""
    watcher = core.watchers[source_id]
    for _ in range(50):
        if watcher._check_task is not None:
            break
        await asyncio.sleep(0)
    await watcher._check_task


class TestInit:
    async def test_init_creates_watchers_and_normalizes_cycle(self, core, in_memory_db):
        source_id = await database.insert_source(Source(
            id="", title="Legacy", url="https://a.com/", crawl_url="https://a.com/",
            css_selector="a", check_cycle_sec=0,
        ))

        await core.init()

        assert source_id in core.watchers
        assert core.watchers[source_id].source.check_cycle_sec == 600
        assert (await database.get_source(source_id)).check_cycle_sec == 600

    async def test_start_skips_disabled_sources(self, core, in_memory_db):
        await database.insert_source(Source(
            id="", title="On", url="https://a.com/", crawl_url="https://a.com/",
            css_selector="a", check_cycle_sec=60,
        ))
        off_id = await database.insert_source(Source(
            id="", title="Off", url="https://b.com/", crawl_url="https://b.com/",
            css_selector="a", check_cycle_sec=60, disabled=True,
        ))
        await core.init()

        core.start()

        assert core.watchers[off_id].is_scheduled is False
        assert sum(w.is_scheduled for w in core.watchers.values()) == 1


class TestInsertSource:
    async def test_insert_verifies_persists_and_checks(self, core, site):
        source = await core.insert_source(dict(SOURCE_FIELDS))
        await settle(core, source.id)

        stored = await database.get_source(source.id)
        assert stored.check_cycle_sec == 600
        assert stored.last_url == ITEM_URL
        assert source.id in core.watchers
        assert await database.get_category("news/tech") is not None

        pages = await core.list_pages()
        assert [p.title for p in pages] == ["Post one"]
        assert pages[0].source_id == source.id

    async def test_unreachable_crawl_url_persists_nothing(self, core, http_routes):
        with pytest.raises(InvalidCrawlTargetError) as exc_info:
            await core.insert_source(dict(SOURCE_FIELDS))

        assert exc_info.value.url == CRAWL_URL
        assert await core.list_sources() == []
        assert core.watchers == {}

    async def test_bad_selector_persists_nothing(self, core, http_routes):
        http_routes[CRAWL_URL] = "<html><body><p>nothing</p></body></html>"

        with pytest.raises(InvalidSelectorError):
            await core.insert_source(dict(SOURCE_FIELDS))

        assert await core.list_sources() == []
        assert core.watchers == {}

    async def test_missing_fields(self, core):
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            await core.insert_source({"title": "Only title"})

        assert exc_info.value.fields == ["url", "crawl_url", "css_selector"]

    async def test_unknown_field(self, core):
        with pytest.raises(InvalidFieldError) as exc_info:
            await core.insert_source({**SOURCE_FIELDS, "id": "mine"})

        assert exc_info.value.fields == ["id"]

    async def test_negative_cycle(self, core):
        with pytest.raises(InvalidFieldError):
            await core.insert_source({**SOURCE_FIELDS, "check_cycle_sec": -5})


class TestUpdateSource:
    async def test_update_recreates_watcher(self, core, site):
        source = await core.insert_source(dict(SOURCE_FIELDS))
        await settle(core, source.id)
        old_watcher = core.watchers[source.id]

        updated = await core.update_source(source.id, {"check_cycle_sec": 120, "category": "misc"})

        assert updated.check_cycle_sec == 120
        new_watcher = core.watchers[source.id]
        assert new_watcher is not old_watcher
        assert new_watcher.source.check_cycle_sec == 120
        assert new_watcher.source.last_url == ITEM_URL
        assert old_watcher.is_scheduled is False
        assert await database.get_category("misc") is not None

    async def test_disable_through_update(self, core, site):
        source = await core.insert_source(dict(SOURCE_FIELDS))
        await settle(core, source.id)

        await core.update_source(source.id, {"disabled": True})

        assert core.watchers[source.id].is_scheduled is False

    async def test_update_missing_source(self, core):
        with pytest.raises(NotFoundError):
            await core.update_source("missing", {"title": "x"})

    async def test_update_id_rejected(self, core):
        with pytest.raises(InvalidFieldError):
            await core.update_source("any", {"id": "other"})


class TestDeleteSource:
    async def test_delete_stops_watcher_and_keeps_pages(self, core, site):
        source = await core.insert_source(dict(SOURCE_FIELDS))
        await settle(core, source.id)
        watcher = core.watchers[source.id]

        deleted = await core.delete_source(source.id)

        assert deleted == 0
        assert source.id not in core.watchers
        assert watcher.is_scheduled is False
        assert await database.get_source(source.id) is None
        assert len(await core.list_pages()) == 1

    async def test_delete_with_pages(self, core, site):
        source = await core.insert_source(dict(SOURCE_FIELDS))
        await settle(core, source.id)

        deleted = await core.delete_source(source.id, delete_pages=True)

        assert deleted == 1
        assert await core.list_pages(PageFilter(source_id=source.id)) == []

    async def test_delete_missing_source(self, core):
        with pytest.raises(NotFoundError):
            await core.delete_source("missing")


class TestPages:
    async def test_insert_and_archive_new_page(self, core, http_routes):
        http_routes["https://example.com/a"] = article_html(title="Submitted")

        live = await core.insert_page("https://example.com/a", "reading")
        kept = await core.archive_new_page("https://example.com/a")

        assert live.archived is False
        assert live.source_id == ""
        assert kept.archived is True
        assert [p.id for p in await core.list_pages()] == [live.id]
        assert [p.id for p in await core.list_pages(archived=True)] == [kept.id]

    async def test_insert_page_requires_url(self, core):
        with pytest.raises(MissingRequiredFieldError):
            await core.insert_page("")

    async def test_archive_page_leaves_original(self, core, http_routes):
        http_routes["https://example.com/a"] = article_html(title="Submitted")
        live = await core.insert_page("https://example.com/a")

        archived = await core.archive_page(live.id)

        assert (await core.get_page(live.id)).archived is False
        assert (await core.get_page(archived.id)).is_read is True

    async def test_read_and_unread(self, core, http_routes):
        http_routes["https://example.com/a"] = article_html()
        page = await core.insert_page("https://example.com/a")

        await core.read_page(page.id)
        assert (await core.get_page(page.id)).is_read is True

        await core.read_page(page.id, set_unread=True)
        assert (await core.get_page(page.id)).is_read is False

    async def test_read_missing_page(self, core):
        with pytest.raises(NotFoundError):
            await core.read_page("missing")

    async def test_delete_page(self, core, http_routes):
        http_routes["https://example.com/a"] = article_html()
        page = await core.insert_page("https://example.com/a")

        await core.delete_page(page.id)

        with pytest.raises(NotFoundError):
            await core.get_page(page.id)
        with pytest.raises(NotFoundError):
            await core.delete_page(page.id)


class TestCategories:
    async def test_add_list_delete(self, core):
        await core.add_category("news")
        await core.add_category("news/tech")
        await core.add_category("newsletter")

        assert [c.name for c in await core.list_categories()] == ["news", "news/tech", "newsletter"]
        assert [c.name for c in await core.list_categories("news")] == ["news"]
        assert [c.name for c in await core.list_categories("news", with_sub=True)] == ["news", "news/tech"]
        assert await core.list_categories("sports") == []

        await core.delete_category("news")
        assert [c.name for c in await core.list_categories()] == ["news/tech", "newsletter"]

    async def test_add_existing_category(self, core):
        await core.add_category("news")

        with pytest.raises(AlreadyExistsError):
            await core.add_category("news")

    async def test_delete_missing_category(self, core):
        with pytest.raises(NotFoundError):
            await core.delete_category("missing")


class TestSingleton:
    async def test_concurrent_first_calls_share_one_core(self, in_memory_db):
        await database.insert_source(Source(
            id="", title="On", url="https://a.com/", crawl_url="https://a.com/",
            css_selector="a", check_cycle_sec=60,
        ))

        try:
            first, second = await asyncio.gather(get_core(), get_core())

            assert first is second
            assert len(first.watchers) == 1
        finally:
            await shutdown_core()
