"""Catalog, meta and stream handlers over the schedule snapshot."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Literal, Optional
from urllib.parse import quote

from anitoday.core.config import get_settings
from anitoday.models.ids import EpisodeId
from anitoday.models.media import ScheduleEntry, ScheduleSnapshot, TorrentCandidate
from anitoday.models.stremio import BehaviorHints, Meta, Stream, Video
from anitoday.services.debrid import RealDebridClient, get_debrid_client
from anitoday.services.search import search_torrents

logger = logging.getLogger(__name__)

CATALOG_TYPE = "series"
CATALOG_ID = "anime-today"
PLACEHOLDER_POSTER = "https://via.placeholder.com/230x345/1a1a2e/ffffff?text=No+Image"

UnlockTiming = Literal["lazy", "eager"]


def _poster(entry: ScheduleEntry) -> str:
    return (
        entry.tmdb_poster
        or entry.cover_extra_large
        or entry.cover_large
        or PLACEHOLDER_POSTER
    )


def _release_info(entry: ScheduleEntry) -> str:
    return f"{entry.season or ''} {entry.season_year or ''} - Ep {entry.episode}".strip()


def _meta_preview(entry: ScheduleEntry) -> Meta:
    poster = _poster(entry)
    return Meta(
        id=str(EpisodeId(media_id=entry.media_id, episode=entry.episode)),
        type=CATALOG_TYPE,
        name=entry.display_title,
        poster=poster,
        background=entry.banner or entry.tmdb_backdrop or poster,
        logo=entry.banner,
        description=entry.description,
        genres=list(entry.genres),
        release_info=_release_info(entry),
        imdb_rating=f"{entry.rating:.1f}" if entry.rating else None,
        alternate_ids=entry.alternate_ids or None,
    )


def catalog(
    snapshot: ScheduleSnapshot, content_type: str, catalog_id: str, skip: int = 0
) -> List[Meta]:
    """List today's episodes. Only the first page exists."""
    if content_type != CATALOG_TYPE or catalog_id != CATALOG_ID or skip > 0:
        return []

    metas = []
    for entry in snapshot.entries:
        meta = _meta_preview(entry)
        meta.description = f"Episode {entry.episode}\n\n{entry.description}".strip()
        metas.append(meta)
    return metas


def _find(snapshot: ScheduleSnapshot, item_id: str) -> Optional[ScheduleEntry]:
    episode_id = EpisodeId.parse(item_id)
    if episode_id is None:
        return None
    return snapshot.find(episode_id.media_id, episode_id.episode)


def meta(snapshot: ScheduleSnapshot, item_id: str) -> Optional[Meta]:
    """Full meta for one episode, or None when it is not in the snapshot."""
    entry = _find(snapshot, item_id)
    if entry is None:
        return None

    result = _meta_preview(entry)
    result.id = item_id
    result.videos = [
        Video(
            id=item_id,
            title=f"Episode {entry.episode}",
            episode=entry.episode,
            season=1,
            released=datetime.fromtimestamp(entry.airing_at, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            thumbnail=result.poster,
        )
    ]
    return result


def _describe(candidate: TorrentCandidate) -> str:
    return f"{candidate.name}\n👥 {candidate.seeders} | 📦 {candidate.size}"


def magnet_stream(candidate: TorrentCandidate) -> Stream:
    """Raw magnet that the player has to hand to its own torrent engine."""
    return Stream(
        name="Nyaa (Magnet)",
        title=_describe(candidate),
        url=candidate.reference,
        behavior_hints=BehaviorHints(not_web_ready=True),
    )


def redirect_stream(candidate: TorrentCandidate, token: str, base_url: str) -> Stream:
    """Link to our redirect endpoint, which unlocks the torrent on click."""
    url = f"{base_url}/rd/{quote(candidate.reference, safe='')}?key={quote(token, safe='')}"
    return Stream(
        name="Nyaa + RealDebrid",
        title=f"🎬 {_describe(candidate)}",
        url=url,
        behavior_hints=BehaviorHints(binge_group="nyaa-rd"),
    )


def direct_stream(candidate: TorrentCandidate, url: str) -> Stream:
    return Stream(
        name="Nyaa + RealDebrid",
        title=f"🎬 {_describe(candidate)}",
        url=url,
        behavior_hints=BehaviorHints(binge_group="nyaa-rd"),
    )


async def find_candidates(entry: ScheduleEntry) -> List[TorrentCandidate]:
    """Search by the romanized title, then the English one if that finds nothing."""
    title = entry.search_title
    if not title:
        return []
    torrents = await search_torrents(title, entry.episode)
    if not torrents and entry.title_english and entry.title_english != title:
        torrents = await search_torrents(entry.title_english, entry.episode)
    return [t for t in torrents if t.reference]


async def _eager_streams(
    candidates: List[TorrentCandidate],
    token: str,
    limit: int,
    debrid: RealDebridClient,
) -> List[Stream]:
    """Unlock the best ``limit`` candidates now, offer the rest as magnets."""
    head, tail = candidates[:limit], candidates[limit:]
    urls = await asyncio.gather(*[debrid.unlock(c.reference, token) for c in head])

    streams = []
    for candidate, url in zip(head, urls):
        if url:
            streams.append(direct_stream(candidate, url))
        elif candidate.magnet:
            streams.append(magnet_stream(candidate))
    streams.extend(magnet_stream(c) for c in tail if c.magnet)
    return streams


async def streams(
    snapshot: ScheduleSnapshot,
    item_id: str,
    token: Optional[str] = None,
    timing: Optional[UnlockTiming] = None,
    debrid: Optional[RealDebridClient] = None,
) -> List[Stream]:
    """Streams for one episode, empty when the episode or torrents are missing."""
    entry = _find(snapshot, item_id)
    if entry is None:
        return []

    candidates = await find_candidates(entry)
    if not candidates:
        return []

    settings = get_settings()
    timing = timing or settings.unlock_timing
    logger.info(f"Stream - RD key: {'yes' if token else 'no'}, timing: {timing}")

    if not token:
        # A bare .torrent URL is useless to the player without a debrid service
        return [magnet_stream(c) for c in candidates if c.magnet]
    if timing == "eager":
        return await _eager_streams(
            candidates, token, settings.eager_unlock_limit, debrid or get_debrid_client()
        )
    return [redirect_stream(c, token, settings.base_url) for c in candidates]


async def resolve(
    reference: str, token: str, debrid: Optional[RealDebridClient] = None
) -> Optional[str]:
    """Unlock one magnet or torrent URL into a direct download URL."""
    debrid = debrid or get_debrid_client()
    return await debrid.unlock(reference, token)
