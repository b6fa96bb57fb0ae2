"""Torrent search across title variants."""

import asyncio
import logging
from typing import Dict, Iterable, List, Literal

from anitoday.core.config import get_settings
from anitoday.models.media import TorrentCandidate
from anitoday.providers import lookup_index
from anitoday.providers.base import TorrentIndex, TorrentIndexError
from anitoday.services.titles import query_variants

logger = logging.getLogger(__name__)

SearchMode = Literal["exhaustive", "first_hit"]

_TRANSPORTS = {"api": "nyaa", "rss": "nyaa-rss"}


def get_index() -> TorrentIndex:
    """Return the index for the configured transport."""
    settings = get_settings()
    name = _TRANSPORTS[settings.index_transport]
    index = lookup_index(name)
    if index is None:
        raise LookupError(f"No torrent index registered as '{name}'")
    return index


def deduplicate_and_rank(candidates: Iterable[TorrentCandidate]) -> List[TorrentCandidate]:
    """Drop repeated content hashes and sort by seeders, most first.

    The first occurrence of a hash wins. Candidates without a hash are all
    kept. The sort is stable so equal seeder counts keep discovery order.
    """
    seen = set()
    unique = []
    for candidate in candidates:
        info_hash = candidate.info_hash
        if info_hash is not None:
            if info_hash in seen:
                continue
            seen.add(info_hash)
        unique.append(candidate)
    return sorted(unique, key=lambda c: c.seeders, reverse=True)


async def search_query(
    index: TorrentIndex, query: str, max_pages: int
) -> List[TorrentCandidate]:
    """Collect up to ``max_pages`` pages for one query.

    Stops early at the first empty page. Errors propagate to the caller.
    """
    torrents: List[TorrentCandidate] = []
    for page in range(1, max_pages + 1):
        results = await index.search_page(query, page)
        if not results:
            break
        torrents.extend(results)
    return torrents


async def _resolve_magnets(
    index: TorrentIndex,
    candidates: List[TorrentCandidate],
    resolved: Dict[int | None, TorrentCandidate | None] | None = None,
) -> List[TorrentCandidate]:
    """Fill in magnets for feed candidates, dropping any that fail.

    ``resolved`` memoizes lookups by view id, so a release returned for
    several query variants is only looked up once.
    """
    if resolved is None:
        resolved = {}
    pending = {}
    for candidate in candidates:
        if (
            candidate.magnet is None
            and candidate.view_id not in resolved
            and candidate.view_id not in pending
        ):
            pending[candidate.view_id] = candidate

    async def resolve(candidate: TorrentCandidate) -> TorrentCandidate | None:
        try:
            return await index.resolve_magnet(candidate)
        except TorrentIndexError as e:
            logger.warning(f"Dropping '{candidate.name}': {e}")
            return None

    results = await asyncio.gather(*[resolve(c) for c in pending.values()])
    resolved.update(zip(pending.keys(), results))

    found = []
    for candidate in candidates:
        if candidate.magnet is not None:
            found.append(candidate)
        elif resolved.get(candidate.view_id) is not None:
            found.append(resolved[candidate.view_id])
    return found


async def search_torrents(
    title: str,
    episode: int,
    index: TorrentIndex | None = None,
    mode: SearchMode | None = None,
    max_pages: int | None = None,
) -> List[TorrentCandidate]:
    """Search the index for one episode of a show.

    Every title variant is queried in order. In ``exhaustive`` mode all
    variants are merged; in ``first_hit`` mode the search stops at the first
    variant returning anything. A failing variant counts as zero results.

    Returns:
        Deduplicated candidates ranked by seeders, or an empty list.
    """
    settings = get_settings()
    index = index or get_index()
    mode = mode or settings.search_mode
    max_pages = max_pages or settings.search_max_pages

    collected: List[TorrentCandidate] = []
    resolved: Dict[int | None, TorrentCandidate | None] = {}
    for query in query_variants(title, episode):
        try:
            torrents = await search_query(index, query, max_pages)
        except TorrentIndexError as e:
            logger.error(f"Index error for '{query}': {e}")
            continue

        if index.needs_resolution:
            torrents = await _resolve_magnets(index, torrents, resolved)

        if torrents:
            logger.info(f"Found {len(torrents)} torrents for '{query}'")
            collected.extend(torrents)
            if mode == "first_hit":
                break

    results = deduplicate_and_rank(collected)
    if results:
        logger.info(f"Total unique: {len(results)} torrents for '{title}' ep {episode}")
    return results
