"""AniList airing schedule source."""

import logging
from typing import Any, List, Optional

import niquests
from bs4 import BeautifulSoup
from urllib3.util import Retry

from anitoday.core.config import get_settings
from anitoday.models.media import ScheduleEntry

logger = logging.getLogger(__name__)

SCHEDULE_QUERY = """
query ($page: Int, $start: Int, $end: Int) {
  Page(page: $page, perPage: 50) {
    pageInfo { hasNextPage }
    airingSchedules(airingAt_greater: $start, airingAt_lesser: $end, sort: TIME) {
      id
      airingAt
      episode
      media {
        id
        title { romaji english native }
        coverImage { extraLarge large }
        bannerImage
        description
        genres
        averageScore
        season
        seasonYear
      }
    }
  }
}
"""

MAX_PAGES = 5


class AniListError(Exception):
    """Domain exception for AniList failures."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.original_exception = original_exception


def strip_html(text: Optional[str]) -> str:
    """Reduce an AniList HTML description to plain text."""
    if not text:
        return ""
    return BeautifulSoup(text, "html.parser").get_text().strip()


def parse_schedule(schedule: dict) -> Optional[ScheduleEntry]:
    """Build a ScheduleEntry from one ``airingSchedules`` item.

    Returns None when required fields are missing.
    """
    if not isinstance(schedule, dict):
        return None
    media = schedule.get("media") or {}
    title = media.get("title") or {}
    cover = media.get("coverImage") or {}
    score = media.get("averageScore")

    try:
        return ScheduleEntry(
            media_id=media["id"],
            episode=schedule["episode"],
            airing_at=schedule["airingAt"],
            title_romaji=title.get("romaji") or None,
            title_english=title.get("english") or None,
            title_native=title.get("native") or None,
            cover_extra_large=cover.get("extraLarge") or None,
            cover_large=cover.get("large") or None,
            banner=media.get("bannerImage") or None,
            description=strip_html(media.get("description")),
            genres=tuple(media.get("genres") or ()),
            rating=round(score / 10, 1) if score else None,
            season=media.get("season"),
            season_year=media.get("seasonYear"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning(f"Skipping malformed schedule {schedule.get('id')}: {exc}")
        return None


class AniListClient:
    """Fetches airing schedules from the AniList GraphQL API."""

    def __init__(self, url: str | None = None, retry_config: Retry | None = None):
        settings = get_settings()
        self._settings = settings
        self.url = url or settings.anilist_url
        if retry_config is None:
            retry_config = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["POST"],
            )
        self.session = niquests.AsyncSession(retries=retry_config)
        if settings.proxy:
            self.session.proxies = {"http": settings.proxy, "https": settings.proxy}

    async def aclose(self) -> None:
        """Properly close the internal HTTP session."""
        if hasattr(self, "session") and self.session:
            await self.session.close()

    async def _query_page(self, page: int, start: int, end: int) -> dict:
        try:
            response = await self.session.post(
                self.url,
                json={
                    "query": SCHEDULE_QUERY,
                    "variables": {"page": page, "start": start, "end": end},
                },
                timeout=self._settings.metadata_timeout * 2,
            )
            response.raise_for_status()
            data = response.json()
        except Exception as exc:
            raise AniListError(f"AniList request failed: {exc}", exc) from exc

        page_data = data.get("data") if isinstance(data, dict) else None
        page_data = page_data.get("Page") if isinstance(page_data, dict) else None
        if not isinstance(page_data, dict) or not isinstance(
            page_data.get("airingSchedules"), list
        ):
            raise AniListError(f"Unexpected AniList response: {data!r:.200}")
        return page_data

    async def fetch_schedules(self, start: int, end: int) -> List[dict]:
        """Return raw airing schedules between two epoch seconds.

        Raises:
            AniListError: any page could not be fetched or parsed.
        """
        schedules: List[Any] = []
        for page in range(1, MAX_PAGES + 1):
            page_data = await self._query_page(page, start, end)
            schedules.extend(page_data["airingSchedules"])
            if not (page_data.get("pageInfo") or {}).get("hasNextPage"):
                break
        return schedules

    async def fetch_entries(self, start: int, end: int) -> List[ScheduleEntry]:
        """Fetch and parse the schedule window into entries."""
        schedules = await self.fetch_schedules(start, end)
        entries = []
        for schedule in schedules:
            entry = parse_schedule(schedule)
            if entry is not None:
                entries.append(entry)
        return entries
