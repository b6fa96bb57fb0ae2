"""Real-Debrid unlock client.

Unlocking a torrent is a four step conversation with the debrid API:
add the magnet (or .torrent), select all files, poll until the remote
download has produced links, then unrestrict the first link into a
direct URL. Every failure along the way collapses to ``None`` so callers
can fall back to offering the raw magnet.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

import niquests
from pydantic import BaseModel, PositiveFloat, PositiveInt
from urllib3.util import Retry

from anitoday.core.config import get_settings
from anitoday.models.media import UnlockSession

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

# Remote statuses after which no links will ever appear
FAILED_STATUSES = frozenset({"magnet_error", "error", "virus", "dead"})


def is_supported_reference(reference: str, index_base_url: str) -> bool:
    """Whether a reference may be handed to the debrid service.

    Magnets are always accepted. A ``.torrent`` URL must point at the
    download path of the configured index, since it is fetched by this
    server before upload.
    """
    if reference.startswith("magnet:?"):
        return True
    url = urlsplit(reference)
    index = urlsplit(index_base_url)
    return (
        url.scheme in ("http", "https")
        and url.scheme == index.scheme
        and url.netloc.lower() == index.netloc.lower()
        and url.path.startswith("/download/")
        and ".." not in url.path
    )


class DebridError(Exception):
    """Domain exception for debrid API failures."""

    def __init__(self, message: str, original_exception: Exception | None = None):
        super().__init__(message)
        self.original_exception = original_exception


class PollPolicy(BaseModel):
    """How long to wait for the remote download to produce links."""

    interval: PositiveFloat = 2.0
    max_attempts: PositiveInt = 10


class RealDebridClient:
    """Async client for the Real-Debrid REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        poll_policy: PollPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        retry_config: Retry | None = None,
    ):
        settings = get_settings()
        self._settings = settings
        self.base_url = (base_url or settings.debrid_base_url).rstrip("/")
        self.index_base_url = settings.index_base_url
        self.poll_policy = poll_policy or PollPolicy(
            interval=settings.unlock_poll_interval,
            max_attempts=settings.unlock_poll_attempts,
        )
        self._sleep = sleep
        if retry_config is None:
            retry_config = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 502, 503, 504],
                allowed_methods=["GET"],
            )
        self.session = niquests.AsyncSession(retries=retry_config)
        if settings.proxy:
            self.session.proxies = {"http": settings.proxy, "https": settings.proxy}

    async def aclose(self) -> None:
        """Properly close the internal HTTP session."""
        if hasattr(self, "session") and self.session:
            await self.session.close()

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        timeout: float | None = None,
        **kwargs,
    ) -> Any:
        """Call the API and return the decoded JSON body (None when empty)."""
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await self.session.request(
                method,
                url,
                headers=headers,
                timeout=timeout or self._settings.submit_timeout,
                **kwargs,
            )
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except Exception as exc:
            raise DebridError(f"{method} {path} failed: {exc}", exc) from exc

    async def _fetch_torrent_file(self, url: str) -> bytes:
        try:
            response = await self.session.get(
                url, timeout=self._settings.submit_timeout
            )
            response.raise_for_status()
        except Exception as exc:
            raise DebridError(f"Could not download {url}: {exc}", exc) from exc
        if not response.content:
            raise DebridError(f"Empty torrent file at {url}")
        return response.content

    async def submit(self, reference: str | bytes, token: str) -> str:
        """Add a magnet, a .torrent URL or raw .torrent bytes. Returns the job id."""
        if isinstance(reference, str) and not is_supported_reference(
            reference, self.index_base_url
        ):
            raise DebridError(f"Unsupported reference: {reference[:80]!r}")
        if isinstance(reference, str) and reference.startswith("magnet:"):
            data = await self._request(
                "POST", "/torrents/addMagnet", token, data={"magnet": reference}
            )
        else:
            if isinstance(reference, str):
                reference = await self._fetch_torrent_file(reference)
            data = await self._request(
                "PUT", "/torrents/addTorrent", token, data=reference
            )

        torrent_id = data.get("id") if isinstance(data, dict) else None
        if not torrent_id:
            raise DebridError(f"Submission returned no id: {data!r}")
        return str(torrent_id)

    async def select_files(self, torrent_id: str, token: str) -> None:
        """Include every file of the torrent in the job."""
        await self._request(
            "POST", f"/torrents/selectFiles/{torrent_id}", token, data={"files": "all"}
        )

    async def status(self, torrent_id: str, token: str) -> UnlockSession:
        data = await self._request("GET", f"/torrents/info/{torrent_id}", token)
        if not isinstance(data, dict):
            raise DebridError(f"Malformed info for {torrent_id}: {data!r}")
        links = data.get("links") or []
        return UnlockSession(
            torrent_id=torrent_id,
            status=str(data.get("status", "unknown")),
            links=[link for link in links if isinstance(link, str) and link],
        )

    async def unrestrict(self, link: str, token: str) -> str:
        data = await self._request(
            "POST", "/unrestrict/link", token, data={"link": link}
        )
        download = data.get("download") if isinstance(data, dict) else None
        if not isinstance(download, str) or not download:
            raise DebridError(f"Unrestrict returned no download: {data!r}")
        return download

    async def wait_for_links(self, torrent_id: str, token: str) -> UnlockSession | None:
        """Poll the job until it has links or the attempt budget runs out."""
        policy = self.poll_policy
        for attempt in range(1, policy.max_attempts + 1):
            await self._sleep(policy.interval)
            session = await self.status(torrent_id, token)
            if session.links:
                return session
            if session.status in FAILED_STATUSES:
                logger.warning(f"RD: torrent {torrent_id} failed with '{session.status}'")
                return None
            logger.debug(
                f"RD: torrent {torrent_id} is '{session.status}' "
                f"({attempt}/{policy.max_attempts})"
            )
        logger.info(f"RD: torrent {torrent_id} not ready after {policy.max_attempts} polls")
        return None

    async def unlock(self, reference: str | bytes, token: str) -> str | None:
        """Turn a magnet or torrent into a direct download URL.

        Returns:
            The direct URL, or None if any step failed or the job was not
            ready within the poll budget.
        """
        if not token or not reference:
            return None
        try:
            torrent_id = await self.submit(reference, token)
            await self.select_files(torrent_id, token)
            session = await self.wait_for_links(torrent_id, token)
            if session is None:
                return None
            download = await self.unrestrict(session.links[0], token)
        except DebridError as e:
            logger.error(f"RealDebrid error: {e}")
            return None

        logger.info(f"RD: unlocked torrent {torrent_id}")
        return download


_client: RealDebridClient | None = None


def get_debrid_client() -> RealDebridClient:
    """Return the shared client, creating it on first use."""
    global _client
    if _client is None:
        _client = RealDebridClient()
    return _client
