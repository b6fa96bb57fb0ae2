"""TMDB lookups used to enrich the schedule with artwork."""

import asyncio
import logging
from typing import Optional

import requests
import tmdbsimple as tmdb
from cachetools import TTLCache, cached
from pydantic import BaseModel
from tmdbsimple.base import APIKeyError

from anitoday.core.config import get_settings

logger = logging.getLogger(__name__)

POSTER_BASE = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE = "https://image.tmdb.org/t/p/w1280"


class TMDBError(Exception):
    """Domain exception for TMDB failures."""

    def __init__(self, message: str, original_exception: Exception = None):
        super().__init__(message)
        self.original_exception = original_exception


# Titles and artwork barely change, so lookups survive several refreshes
search_cache = TTLCache(maxsize=500, ttl=6 * 3600)
images_cache = TTLCache(maxsize=500, ttl=6 * 3600)

# Initialize TMDB
settings = get_settings()
tmdb.API_KEY = settings.tmdb_api_key
tmdb.REQUESTS_TIMEOUT = settings.metadata_timeout


class TMDBImages(BaseModel):
    """Poster and backdrop picked from a series' image lists."""

    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None


def is_enabled() -> bool:
    return bool(tmdb.API_KEY)


def _pick_image(images: list) -> Optional[dict]:
    """First English or language-neutral image, else the first one."""
    for image in images:
        if image.get("iso_639_1") in ("en", None):
            return image
    return images[0] if images else None


@cached(search_cache)
def _find_series_id_sync(title: str, year: Optional[int]) -> Optional[int]:
    """Search TMDB for a series and return the best match id (synchronous, cached)."""
    search = tmdb.Search()
    params = {"query": title}
    if year:
        params["first_air_date_year"] = year
    try:
        search.tv(**params)
    except (requests.exceptions.RequestException, APIKeyError) as exc:
        logger.error("Error searching series for '%s': %s", title, exc)
        raise TMDBError(f"Failed to search series '{title}'", exc) from exc
    except Exception as exc:
        logger.exception("Unexpected error searching series for '%s': %s", title, exc)
        raise TMDBError(f"Unexpected error searching series '{title}'", exc) from exc

    results = getattr(search, "results", None) or []
    return results[0]["id"] if results else None


@cached(images_cache)
def _get_series_images_sync(tmdb_id: int) -> TMDBImages:
    """Fetch poster/backdrop for a TMDB series (synchronous, cached)."""
    tv_api = tmdb.TV(tmdb_id)
    try:
        info = tv_api.images()
    except Exception as exc:
        logger.error("Failed to fetch images for ID %s: %s", tmdb_id, exc)
        raise TMDBError(f"Failed to fetch images for ID {tmdb_id}", exc) from exc

    poster = _pick_image(info.get("posters", []))
    backdrop = _pick_image(info.get("backdrops", []))

    return TMDBImages(
        poster_url=f"{POSTER_BASE}{poster['file_path']}" if poster else None,
        backdrop_url=f"{BACKDROP_BASE}{backdrop['file_path']}" if backdrop else None,
    )


async def find_series_id(title: str, year: Optional[int] = None) -> Optional[int]:
    """Search TMDB for a series by title and first-air year (async)."""
    return await asyncio.to_thread(_find_series_id_sync, title, year)


async def get_series_images(tmdb_id: int) -> TMDBImages:
    """Fetch the preferred poster and backdrop for a series (async)."""
    return await asyncio.to_thread(_get_series_images_sync, tmdb_id)
