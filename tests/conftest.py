"""Shared fixtures for page_alerter tests."""

from typing import List, Union
from unittest.mock import AsyncMock, MagicMock, patch

import aiosqlite
import httpx
import pytest

from page_alerter.config import ServerConfig, set_config
from page_alerter.storage.assets import AssetStore
from page_alerter.storage.database import init_database


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def config(tmp_path):
    """Process-wide config pointing at a temporary directory."""
    cfg = ServerConfig(
        db_path=str(tmp_path / "test.db"),
        data_dir=str(tmp_path / "page_data"),
        log_dir="",
        default_check_cycle_sec=600,
        preview_max_width=100,
    )
    set_config(cfg)
    yield cfg
    set_config(None)


@pytest.fixture
def assets(config):
    return AssetStore(config.data_dir)


@pytest.fixture
async def in_memory_db():
    """Create an in-memory database for testing."""
    db = await aiosqlite.connect(":memory:")
    db.row_factory = aiosqlite.Row
    await init_database(db)

    # Patch get_database to return our in-memory connection
    with patch("page_alerter.storage.database.get_database", AsyncMock(return_value=db)):
        yield db

    await db.close()


Route = Union[str, bytes, Exception]


class HttpRoutes(dict):
    """URL -> response body map that remembers every requested URL."""

    def __init__(self):
        super().__init__()
        self.requested: List[str] = []


@pytest.fixture
def http_routes():
    """Patch the HTTP client so requests are answered from a URL -> body map.

    Values may be text, bytes, or an exception to raise. Unknown URLs fail
    with a connection error.
    """
    routes = HttpRoutes()

    async def mock_get(url, **kwargs):
        routes.requested.append(url)
        body = routes.get(url)
        if body is None:
            raise httpx.ConnectError(f"unreachable: {url}")
        if isinstance(body, Exception):
            raise body

        response = MagicMock()
        response.status_code = 200
        response.raise_for_status = MagicMock()
        if isinstance(body, bytes):
            response.content = body
            response.text = body.decode("latin-1")
        else:
            response.text = body
            response.content = body.encode("utf-8")
        return response

    with patch("page_alerter.services.fetcher.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.get = mock_get
        mock_instance.__aenter__ = AsyncMock(return_value=mock_instance)
        mock_instance.__aexit__ = AsyncMock(return_value=None)
        mock_client.return_value = mock_instance
        yield routes


