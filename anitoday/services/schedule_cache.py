"""Published snapshot of today's airing schedule.

A single background task rebuilds the snapshot and swaps it in with one
reference assignment. Request handlers only ever call ``current()``, which
never waits on a refresh and never touches the network.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Tuple

from anitoday.core.config import Settings, get_settings
from anitoday.models.media import ScheduleEntry, ScheduleSnapshot
from anitoday.services.anilist import AniListClient, AniListError
from anitoday.services.enrichment import Enricher

logger = logging.getLogger(__name__)

DAY = 86400

ScheduleSource = Callable[[int, int], Awaitable[List[ScheduleEntry]]]
EntryEnricher = Callable[[ScheduleEntry], Awaitable[ScheduleEntry]]


def day_window(now: float) -> Tuple[int, int]:
    """Start and end of the UTC calendar day containing ``now``."""
    now = int(now)
    start = now - now % DAY
    return start, start + DAY


def seconds_until_next_refresh(settings: Settings, now: float) -> float:
    """Delay before the next scheduled refresh."""
    if settings.refresh_mode == "interval":
        return settings.refresh_interval_minutes * 60.0

    target = int(now) - int(now) % DAY + settings.refresh_daily_hour * 3600
    if target <= now:
        target += DAY
    return float(target - now)


class ScheduleCache:
    """Owns the published ScheduleSnapshot. ``refresh()`` is the only writer."""

    def __init__(
        self,
        source: ScheduleSource,
        enricher: EntryEnricher | None = None,
        enrichment_delay: float | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        clients: List | None = None,
    ):
        settings = get_settings()
        self._source = source
        self._enricher = enricher
        self._enrichment_delay = (
            settings.enrichment_delay if enrichment_delay is None else enrichment_delay
        )
        self._sleep = sleep
        self._clock = clock
        self._clients = clients or []
        self._snapshot = ScheduleSnapshot()
        self._refresh_lock = asyncio.Lock()

    async def aclose(self) -> None:
        """Close the HTTP clients used by the source and enricher."""
        for client in self._clients:
            await client.aclose()

    def current(self) -> ScheduleSnapshot:
        """Return the latest published snapshot."""
        return self._snapshot

    async def _enrich_all(self, entries: List[ScheduleEntry]) -> List[ScheduleEntry]:
        enriched = []
        for i, entry in enumerate(entries):
            try:
                enriched.append(await self._enricher(entry))
            except Exception as e:
                logger.warning(
                    f"Enrichment failed for {entry.display_title!r}: {e}", exc_info=e
                )
                enriched.append(entry)
            if self._enrichment_delay and i < len(entries) - 1:
                await self._sleep(self._enrichment_delay)
        return enriched

    async def refresh(self) -> bool:
        """Rebuild and publish the snapshot.

        Returns:
            True when a new snapshot was published, False when the schedule
            could not be fetched and the previous snapshot was kept.
        """
        async with self._refresh_lock:
            logger.info("Updating schedule cache...")
            start, end = day_window(self._clock())
            try:
                entries = await self._source(start, end)
            except AniListError as e:
                logger.error(f"Schedule fetch failed, keeping previous snapshot: {e}")
                return False

            if self._enricher is not None:
                entries = await self._enrich_all(entries)

            snapshot = ScheduleSnapshot.build(
                entries, refreshed_at=datetime.now(timezone.utc)
            )
            self._snapshot = snapshot
            logger.info(f"Cache: {len(snapshot)} anime")
            return True

    async def run_forever(self) -> None:
        """Refresh now, then on the configured schedule until cancelled."""
        settings = get_settings()
        while True:
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Unexpected error refreshing schedule: {e}", exc_info=e)
            delay = seconds_until_next_refresh(settings, self._clock())
            logger.debug(f"Next schedule refresh in {delay:.0f}s")
            await asyncio.sleep(delay)


def create_schedule_cache() -> ScheduleCache:
    """Build the cache wired to AniList and, if enabled, the enricher."""
    settings = get_settings()
    anilist = AniListClient()
    enricher = Enricher() if settings.enrichment_enabled else None
    return ScheduleCache(
        source=anilist.fetch_entries,
        enricher=enricher.enrich if enricher else None,
        clients=[c for c in (anilist, enricher) if c is not None],
    )


# Global cache instance
schedule_cache = create_schedule_cache()


@asynccontextmanager
async def schedule_cache_lifespan(app):
    """FastAPI lifespan context manager running the refresh task."""
    task = asyncio.create_task(schedule_cache.run_forever())
    try:
        yield
    finally:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        await schedule_cache.aclose()
