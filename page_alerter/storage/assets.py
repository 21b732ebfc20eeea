"""Asset storage for page_alerter.

Cached files for a page live in a directory named after the page id under
the configured data directory. Paths handed out by the store are relative to
that root (``<page_id>/preview.jpg``) so the data directory can move.
Blocking filesystem work runs in a worker thread.
"""

import asyncio
import shutil
from pathlib import Path
from typing import Union


class AssetStore:
    """Per-page file storage rooted at a data directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def page_dir(self, page_id: str) -> Path:
        """Directory of a page, always a direct child of the store root.

        Raises:
            ValueError: If the id is empty or would leave that level
        """
        path = self.root / page_id
        if not page_id or path.resolve().parent != self.root.resolve():
            raise ValueError(f"Invalid page id for asset storage: {page_id!r}")
        return path

    def resolve(self, relative_path: str) -> Path:
        """Turn a stored relative path into an absolute one."""
        return self.root / relative_path

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    async def ensure_dir(self, page_id: str) -> Path:
        path = self.page_dir(page_id)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        return path

    async def exists(self, relative_path: str) -> bool:
        return await asyncio.to_thread(self.resolve(relative_path).exists)

    async def write_file(self, page_id: str, name: str, data: bytes) -> str:
        """Write ``data`` into the page directory.

        Returns:
            Path of the written file, relative to the store root
        """
        directory = await self.ensure_dir(page_id)
        path = directory / name
        await asyncio.to_thread(path.write_bytes, data)
        return self.relative(path)

    async def copy_file(self, relative_path: str, page_id: str) -> str:
        """Copy a stored file into another page's directory, keeping its name.

        Returns:
            Path of the copy, relative to the store root
        """
        source = self.resolve(relative_path)
        directory = await self.ensure_dir(page_id)
        target = directory / source.name
        await asyncio.to_thread(shutil.copyfile, source, target)
        return self.relative(target)

    async def remove_dir(self, page_id: str) -> None:
        """Recursively delete a page directory. A missing directory is fine."""
        path = self.page_dir(page_id)
        if await asyncio.to_thread(path.exists):
            await asyncio.to_thread(shutil.rmtree, path)
