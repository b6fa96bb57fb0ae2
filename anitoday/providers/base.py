"""Torrent index base classes and interfaces."""

import logging
from abc import ABC, abstractmethod
from typing import List

import niquests
from aiolimiter import AsyncLimiter
from urllib3.util import Retry

from anitoday.core.config import get_settings
from anitoday.models.media import TorrentCandidate

logger = logging.getLogger(__name__)


class TorrentIndexError(Exception):
    """Domain exception for torrent index failures."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.original_exception = original_exception


class TorrentIndex(ABC):
    """Abstract base class for torrent index transports.

    An index turns a query string and a page number into TorrentCandidate
    objects. Transports that cannot return magnets inline (feeds) also
    implement ``resolve_magnet`` to fetch them one item at a time.
    """

    #: Whether candidates need a follow-up fetch before they carry a magnet
    needs_resolution: bool = False

    def __init__(self, retry_config: Retry | None = None):
        settings = get_settings()
        self._settings = settings
        self.base_url = settings.index_base_url.rstrip("/")
        if retry_config is None:
            retry_config = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["HEAD", "GET", "OPTIONS"],
            )
        self.session = niquests.AsyncSession(retries=retry_config)
        if settings.proxy:
            self.session.proxies = {"http": settings.proxy, "https": settings.proxy}
        self.rate_limiter = AsyncLimiter(settings.index_rate_limit, 1.0)

    async def aclose(self) -> None:
        """Properly close the internal HTTP session."""
        if hasattr(self, "session") and self.session:
            await self.session.close()

    async def _get(self, url: str, params: dict | None = None) -> niquests.Response:
        """Rate-limited GET that raises TorrentIndexError on any failure."""
        try:
            async with self.rate_limiter:
                response = await self.session.get(
                    url,
                    params=params,
                    headers={"User-Agent": "Mozilla/5.0"},
                    timeout=self._settings.metadata_timeout * 2,
                )
                response.raise_for_status()
                return response
        except Exception as exc:
            raise TorrentIndexError(f"Request to {url} failed: {exc}", exc) from exc

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique name of this index."""
        pass

    @abstractmethod
    async def search_page(self, query: str, page: int) -> List[TorrentCandidate]:
        """Return one page of results for a query.

        Args:
            query: The search string, episode number included.
            page: 1-based page number.

        Returns:
            Candidates in the order the index lists them, empty when the
            page has no results.

        Raises:
            TorrentIndexError: the index could not be queried or parsed.
        """
        pass

    async def resolve_magnet(self, candidate: TorrentCandidate) -> TorrentCandidate:
        """Return the candidate with its magnet filled in.

        Raises:
            TorrentIndexError: the magnet could not be obtained.
        """
        return candidate
