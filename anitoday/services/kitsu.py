"""Kitsu id lookups for AniList media."""

import logging
from typing import Optional

import niquests
from cachetools import TTLCache
from urllib3.util import Retry

from anitoday.core.config import get_settings

logger = logging.getLogger(__name__)

cache = TTLCache(maxsize=500, ttl=6 * 3600)


class KitsuClient:
    """Maps AniList ids to Kitsu ids through the Kitsu mappings API."""

    def __init__(self, base_url: str | None = None, retry_config: Retry | None = None):
        settings = get_settings()
        self._settings = settings
        self.base_url = (base_url or settings.kitsu_url).rstrip("/")
        if retry_config is None:
            retry_config = Retry(
                total=2,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
            )
        self.session = niquests.AsyncSession(retries=retry_config)
        if settings.proxy:
            self.session.proxies = {"http": settings.proxy, "https": settings.proxy}

    async def aclose(self) -> None:
        """Properly close the internal HTTP session."""
        if hasattr(self, "session") and self.session:
            await self.session.close()

    async def get_kitsu_id(self, anilist_id: int) -> Optional[str]:
        """Return the Kitsu anime id mapped to an AniList id, or None."""
        if anilist_id in cache:
            return cache[anilist_id]

        params = {
            "filter[externalSite]": "anilist/anime",
            "filter[externalId]": str(anilist_id),
            "include": "item",
        }
        try:
            response = await self.session.get(
                f"{self.base_url}/mappings",
                params=params,
                headers={"Accept": "application/vnd.api+json"},
                timeout=self._settings.metadata_timeout,
            )
            response.raise_for_status()
            data = response.json().get("data") or []
            kitsu_id = data[0]["relationships"]["item"]["data"]["id"] if data else None
        except Exception as e:
            logger.warning(f"Kitsu lookup failed for AniList {anilist_id}: {e}")
            return None

        if kitsu_id:
            cache[anilist_id] = str(kitsu_id)
            return str(kitsu_id)
        return None
