"""Best-effort enrichment of schedule entries with TMDB and Kitsu data."""

import logging

from anitoday.models.media import ScheduleEntry
from anitoday.services import tmdb
from anitoday.services.kitsu import KitsuClient
from anitoday.services.tmdb import TMDBError

logger = logging.getLogger(__name__)


class Enricher:
    """Adds alternate artwork and ids to entries before they are published.

    Every lookup is optional: a failure leaves the field empty and never
    raises.
    """

    def __init__(self, kitsu: KitsuClient | None = None):
        self.kitsu = kitsu or KitsuClient()

    async def aclose(self) -> None:
        await self.kitsu.aclose()

    async def _tmdb_fields(self, entry: ScheduleEntry) -> dict:
        if not tmdb.is_enabled():
            return {}
        title = entry.title_english or entry.title_romaji
        if not title:
            return {}

        try:
            tmdb_id = await tmdb.find_series_id(title, entry.season_year)
            if not tmdb_id:
                return {}
            images = await tmdb.get_series_images(tmdb_id)
        except TMDBError as e:
            logger.warning(f"TMDB enrichment failed for '{title}': {e}")
            return {}

        logger.info(f"TMDB: {title}")
        return {
            "tmdb_id": tmdb_id,
            "tmdb_poster": images.poster_url,
            "tmdb_backdrop": images.backdrop_url,
        }

    async def enrich(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Return a copy of the entry with whatever enrichment succeeded.

        TMDB and Kitsu are looked up independently, so one failing source
        never costs the fields of the other.
        """
        try:
            update = await self._tmdb_fields(entry)
        except Exception as e:
            logger.warning(f"TMDB enrichment crashed for {entry.display_title!r}: {e}")
            update = {}

        try:
            kitsu_id = await self.kitsu.get_kitsu_id(entry.media_id)
        except Exception as e:
            logger.warning(f"Kitsu enrichment crashed for {entry.display_title!r}: {e}")
            kitsu_id = None
        if kitsu_id:
            update["kitsu_id"] = kitsu_id

        return entry.model_copy(update=update) if update else entry
