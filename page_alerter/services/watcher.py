"""Per-source change watcher.

A SourceWatcher owns the polling schedule of one source. The first tick fires
after a random delay within one cycle so that sources loaded together do not
all hit the network at once; after that it ticks every ``check_cycle_sec``
seconds. Each tick spawns a check as its own task. While a check is in
flight further ticks are dropped, not queued.
"""

import asyncio
import random
from typing import Optional

from page_alerter.errors import PageAlerterError
from page_alerter.log_system.correlation import correlation_scope, generate_correlation_id
from page_alerter.log_system.unified_logger import UnifiedLogger
from page_alerter.models.schemas import Source
from page_alerter.services.pipeline import ArchivePipeline
from page_alerter.storage import database

# Consecutive failed checks after which a source is marked disabled
FAILURE_THRESHOLD = 10

logger = UnifiedLogger.get_logger(__name__)


class SourceWatcher:
    """Watches one source for a new latest item."""

    def __init__(self, source: Source, pipeline: ArchivePipeline):
        if source.check_cycle_sec <= 0:
            raise ValueError(f"Source {source.id} has no positive check cycle")

        self.source = source
        self.pipeline = pipeline
        self.failure_count = 0

        self._checking = False
        self._stopped = False
        self._timer: Optional[asyncio.Task] = None
        self._check_task: Optional[asyncio.Task] = None

    @property
    def source_id(self) -> str:
        return self.source.id

    @property
    def is_scheduled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def is_checking(self) -> bool:
        return self._checking

    def start(self) -> bool:
        """Schedule the first check after a random delay within one cycle.

        Returns:
            False if the source is disabled and nothing was scheduled
        """
        if self.source.disabled:
            logger.info(f"Source '{self.source.title}' ({self.source_id}) is disabled; not watching")
            return False

        delay = random.random() * self.source.check_cycle_sec
        self._arm(delay)
        return True

    def check_now(self) -> None:
        """Check immediately and restart the cycle from now."""
        self._arm(0)

    def stop(self) -> None:
        """Cancel the schedule. A check already running is left to finish."""
        self._stopped = True
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        self._stopped = False
        self._timer = asyncio.get_running_loop().create_task(
            self._run(delay), name=f"watcher-{self.source_id}"
        )

    async def _run(self, delay: float) -> None:
        await asyncio.sleep(delay)
        while True:
            self._tick()
            await asyncio.sleep(self.source.check_cycle_sec)

    def _tick(self) -> Optional[asyncio.Task]:
        if self._checking:
            logger.debug(f"Check of source {self.source_id} still running; tick dropped")
            return None

        self._check_task = asyncio.get_running_loop().create_task(self.check())
        return self._check_task

    async def check(self) -> bool:
        """Run one check of the source.

        Errors never escape: they are logged and counted toward the failure
        threshold.

        Returns:
            True if a new item was ingested
        """
        if self._checking:
            return False

        self._checking = True
        with correlation_scope(generate_correlation_id("check")):
            try:
                return await self._check()
            except PageAlerterError as e:
                logger.warning(
                    f"Check of source '{self.source.title}' ({self.source_id}) failed: {e} {e.context}"
                )
                await self._record_failure()
            except Exception:
                logger.exception(
                    f"Unexpected error checking source '{self.source.title}' ({self.source_id})"
                )
                await self._record_failure()
            finally:
                self._checking = False

        return False

    async def _check(self) -> bool:
        item_url = await self.pipeline.find_latest_item(self.source)

        if item_url == self.source.last_url:
            self.failure_count = 0
            return False

        if self._stopped:
            logger.debug(f"Watcher of source {self.source_id} was stopped; dropping {item_url}")
            return False

        await self.pipeline.ingest_detected(self.source, item_url)
        self.source.last_url = item_url
        self.failure_count = 0
        return True

    async def _record_failure(self) -> None:
        self.failure_count += 1
        if self.failure_count != FAILURE_THRESHOLD or self._stopped:
            return

        try:
            await database.update_source(self.source_id, {"disabled": True})
        except Exception:
            logger.exception(f"Could not persist disabled flag for source {self.source_id}")
            return

        self.source.disabled = True
        logger.warning(
            f"Source '{self.source.title}' ({self.source_id}) failed {FAILURE_THRESHOLD} "
            f"checks in a row and has been disabled"
        )
