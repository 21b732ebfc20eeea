"""Integration tests for page_alerter.

These run the full flow through the singleton core and the real database
file configured for the test, with HTTP answered by the route table.
"""

import asyncio

import pytest

from page_alerter.models.schemas import PageFilter
from page_alerter.services import core as core_module
from page_alerter.storage import database
from page_alerter.tools import page_tools
from tests.helpers import article_html, crawl_html, make_image


# Mark all tests as async
pytestmark = pytest.mark.anyio

CRAWL_URL = "https://example.com/blog"


@pytest.fixture
async def live_core(config):
    core = await core_module.get_core()
    core.start()
    yield core
    await core_module.shutdown_core()
    await database.close_database()


async def wait_idle(core, source_id):
    watcher = core.watchers[source_id]
    for _ in range(100):
        if watcher._check_task is not None and watcher._check_task.done():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("check did not finish")


class TestWatchFlow:
    async def test_detect_archive_delete(self, live_core, http_routes, assets):
        http_routes[CRAWL_URL] = crawl_html("/post/1")
        http_routes["https://example.com/post/1"] = article_html(
            title="Post one", image="https://example.com/one.png", description="First"
        )
        http_routes["https://example.com/one.png"] = make_image(300, 150)

        added = await page_tools.add_source(
            title="Example",
            url="https://example.com/",
            crawl_url=CRAWL_URL,
            css_selector="ul.posts li a",
            category="news/tech",
        )
        source_id = added["source"]["id"]
        await wait_idle(live_core, source_id)

        pages = await database.list_pages(PageFilter(source_id=source_id))
        assert [p.title for p in pages] == ["Post one"]
        first = pages[0]
        assert assets.resolve(first.image_path).exists()

        # Nothing new on the crawl page
        result = await page_tools.check_source(source_id=source_id)
        assert result["new_item"] is False

        # The site publishes another post
        http_routes[CRAWL_URL] = crawl_html("/post/2")
        http_routes["https://example.com/post/2"] = article_html(title="Post two")
        result = await page_tools.check_source(source_id=source_id)
        assert result["new_item"] is True

        listed = await page_tools.list_pages(source_id=source_id)
        assert [p["title"] for p in listed["pages"]] == ["Post two", "Post one"]

        archived = (await page_tools.archive_page(page_id=first.id))["page"]
        assert archived["is_read"] is True
        assert assets.resolve(archived["image_path"]).exists()

        removed = await page_tools.remove_source(source_id=source_id, delete_pages=True)
        assert removed["pages_deleted"] == 2
        assert not assets.page_dir(first.id).exists()

        archive = await page_tools.list_pages(archived=True)
        assert [p["id"] for p in archive["pages"]] == [archived["id"]]

        categories = await page_tools.list_categories(name="news", with_sub=True)
        assert categories["categories"] == ["news/tech"]

    async def test_sources_survive_restart(self, config, http_routes):
        http_routes[CRAWL_URL] = crawl_html("/post/1")
        http_routes["https://example.com/post/1"] = article_html()

        core = await core_module.get_core()
        source = await core.insert_source({
            "title": "Example",
            "url": "https://example.com/",
            "crawl_url": CRAWL_URL,
            "css_selector": "ul.posts li a",
            "check_cycle_sec": 90,
        })
        await wait_idle(core, source.id)
        await core_module.shutdown_core()
        await database.close_database()

        restarted = await core_module.get_core()
        try:
            assert list(restarted.watchers) == [source.id]
            watcher = restarted.watchers[source.id]
            assert watcher.source.last_url == "https://example.com/post/1"
            assert watcher.source.check_cycle_sec == 90
            assert watcher.is_scheduled is False
        finally:
            await core_module.shutdown_core()
            await database.close_database()
