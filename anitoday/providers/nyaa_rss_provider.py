"""Nyaa RSS feed transport.

The feed links to the ``.torrent`` file rather than the magnet. The magnet
is rebuilt from ``nyaa:infoHash`` when the feed carries it, and looked up
on the candidate's view page otherwise.
"""

import logging
import re
from typing import List, Optional
from urllib.parse import quote

import feedparser
from bs4 import BeautifulSoup

from anitoday.models.media import TorrentCandidate
from anitoday.providers.base import TorrentIndex, TorrentIndexError
from anitoday.providers.nyaa_provider import parse_view_id

logger = logging.getLogger(__name__)

# Trackers Nyaa itself puts on its magnet links
TRACKERS = (
    "http://nyaa.tracker.wf:7777/announce",
    "udp://open.stealth.si:80/announce",
    "udp://tracker.opentrackr.org:1337/announce",
    "udp://exodus.desync.com:6969/announce",
)

_INFO_HASH = re.compile(r"^(?:[0-9a-fA-F]{40}|[A-Z2-7a-z]{32})$")


def _parse_seeders(value) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def build_magnet(info_hash: Optional[str], name: str) -> Optional[str]:
    """Magnet URI for an info hash, or None when the hash is malformed."""
    if not info_hash or not _INFO_HASH.match(info_hash.strip()):
        return None
    uri = f"magnet:?xt=urn:btih:{info_hash.strip()}&dn={quote(name)}"
    return uri + "".join(f"&tr={quote(tracker, safe='')}" for tracker in TRACKERS)


def parse_feed(content: bytes | str) -> List[TorrentCandidate]:
    """Parse a Nyaa RSS document into candidates."""
    feed = feedparser.parse(content)
    if feed.bozo and not feed.entries:
        raise TorrentIndexError(f"Malformed feed: {feed.bozo_exception}")

    results = []
    for entry in feed.entries:
        name = entry.get("title", "")
        link = entry.get("link") or ""
        if link.startswith("magnet:"):
            magnet = link
        else:
            magnet = build_magnet(entry.get("nyaa_infohash"), name)
        results.append(
            TorrentCandidate(
                name=name,
                seeders=_parse_seeders(entry.get("nyaa_seeders")),
                size=entry.get("nyaa_size", ""),
                magnet=magnet,
                torrent_url=link if link and not link.startswith("magnet:") else None,
                view_id=parse_view_id(entry.get("id") or entry.get("guid")),
            )
        )
    return results


class NyaaRSSProvider(TorrentIndex):
    """Searches the Nyaa RSS feed. The feed has no pagination."""

    needs_resolution = True

    @property
    def name(self) -> str:
        return "nyaa-rss"

    async def search_page(self, query: str, page: int) -> List[TorrentCandidate]:
        if page > 1:
            return []
        params = {
            "page": "rss",
            "f": self._settings.index_filter,
            "c": self._settings.index_category,
            "q": query,
        }
        response = await self._get(f"{self.base_url}/", params=params)
        return parse_feed(response.content or b"")

    async def resolve_magnet(self, candidate: TorrentCandidate) -> TorrentCandidate:
        if candidate.magnet:
            return candidate
        if candidate.view_id is None:
            raise TorrentIndexError(f"No permalink for '{candidate.name}'")

        logger.debug(f"Looking up magnet on view page {candidate.view_id}")
        response = await self._get(f"{self.base_url}/view/{candidate.view_id}")
        soup = BeautifulSoup(response.text or "", "html.parser")
        magnet_link = soup.find("a", href=re.compile(r"^magnet:"))
        if not magnet_link:
            raise TorrentIndexError(f"No magnet on view page {candidate.view_id}")
        return candidate.model_copy(update={"magnet": magnet_link["href"]})
