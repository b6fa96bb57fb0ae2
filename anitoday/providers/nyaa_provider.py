"""Nyaa search page transport."""

import logging
import re
from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from anitoday.models.media import TorrentCandidate
from anitoday.providers.base import TorrentIndex, TorrentIndexError

logger = logging.getLogger(__name__)

_VIEW_ID_RE = re.compile(r"/view/(\d+)")


def _parse_int(text: str) -> int:
    try:
        return max(int(text.strip()), 0)
    except ValueError:
        return 0


def parse_view_id(href: str | None) -> int | None:
    """Extract the numeric torrent id from a ``/view/<id>`` permalink."""
    if not href:
        return None
    match = _VIEW_ID_RE.search(href)
    return int(match.group(1)) if match else None


def parse_search_page(html: str, base_url: str) -> List[TorrentCandidate]:
    """Parse the results table of a Nyaa search page.

    Columns are: category, name, links, size, date, seeders, leechers,
    completed downloads.
    """
    soup = BeautifulSoup(html, "html.parser")
    results = []

    for row in soup.select("table.torrent-list tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 6:
            continue

        # The name cell may start with a comment counter link
        name_links = [
            a for a in cells[1].find_all("a") if "comments" not in (a.get("class") or [])
        ]
        if not name_links:
            continue
        name_link = name_links[-1]
        name = name_link.get("title") or name_link.get_text(strip=True)

        magnet_link = cells[2].find("a", href=re.compile(r"^magnet:"))
        torrent_link = cells[2].find("a", href=re.compile(r"\.torrent$"))

        results.append(
            TorrentCandidate(
                name=name,
                seeders=_parse_int(cells[5].get_text()),
                size=cells[3].get_text(strip=True),
                magnet=magnet_link["href"] if magnet_link else None,
                torrent_url=urljoin(base_url, torrent_link["href"])
                if torrent_link
                else None,
                view_id=parse_view_id(name_link.get("href")),
            )
        )

    return results


class NyaaProvider(TorrentIndex):
    """Searches the Nyaa HTML listing, which carries magnets inline."""

    @property
    def name(self) -> str:
        return "nyaa"

    async def search_page(self, query: str, page: int) -> List[TorrentCandidate]:
        params = {
            "f": self._settings.index_filter,
            "c": self._settings.index_category,
            "q": query,
            "p": page,
        }
        response = await self._get(f"{self.base_url}/", params=params)
        try:
            return parse_search_page(response.text or "", self.base_url)
        except Exception as exc:
            raise TorrentIndexError(f"Could not parse results for '{query}'", exc) from exc
