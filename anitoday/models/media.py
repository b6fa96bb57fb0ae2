"""Domain models for the daily schedule and torrent search results."""

import re
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

_BTIH_RE = re.compile(r"btih:([a-zA-Z0-9]+)")


class ScheduleEntry(BaseModel):
    """One airing of one episode, as published in a snapshot."""

    model_config = ConfigDict(frozen=True)

    media_id: int
    episode: int = Field(gt=0)
    airing_at: int  # Epoch seconds
    title_romaji: Optional[str] = None
    title_english: Optional[str] = None
    title_native: Optional[str] = None
    cover_extra_large: Optional[str] = None
    cover_large: Optional[str] = None
    banner: Optional[str] = None
    description: str = ""  # HTML already stripped
    genres: Tuple[str, ...] = ()
    rating: Optional[float] = None  # 0.0 - 10.0
    season: Optional[str] = None
    season_year: Optional[int] = None
    # Enrichment, filled on a best-effort basis
    tmdb_id: Optional[int] = None
    tmdb_poster: Optional[str] = None
    tmdb_backdrop: Optional[str] = None
    kitsu_id: Optional[str] = None

    @property
    def key(self) -> Tuple[int, int]:
        return self.media_id, self.episode

    @property
    def display_title(self) -> str:
        """First non-empty title, romanized before English before native."""
        return self.title_romaji or self.title_english or self.title_native or ""

    @property
    def search_title(self) -> Optional[str]:
        """Title sent to the index: romanized, else English. Native titles are never searched."""
        return self.title_romaji or self.title_english

    @property
    def alternate_ids(self) -> List[str]:
        ids = []
        if self.kitsu_id:
            ids.append(f"kitsu:{self.kitsu_id}")
        if self.tmdb_id:
            ids.append(f"tmdb:{self.tmdb_id}")
        return ids


class ScheduleSnapshot(BaseModel):
    """Immutable point-in-time copy of today's schedule."""

    model_config = ConfigDict(frozen=True)

    entries: Tuple[ScheduleEntry, ...] = ()
    refreshed_at: Optional[datetime] = None

    @classmethod
    def build(
        cls, entries: List[ScheduleEntry], refreshed_at: Optional[datetime] = None
    ) -> "ScheduleSnapshot":
        """Build a snapshot keeping the first entry for each (media, episode)."""
        seen = set()
        unique = []
        for entry in entries:
            if entry.key in seen:
                continue
            seen.add(entry.key)
            unique.append(entry)
        return cls(entries=tuple(unique), refreshed_at=refreshed_at)

    def find(self, media_id: int, episode: int) -> Optional[ScheduleEntry]:
        for entry in self.entries:
            if entry.media_id == media_id and entry.episode == episode:
                return entry
        return None

    def __len__(self) -> int:
        return len(self.entries)


class TorrentCandidate(BaseModel):
    """A single torrent found on the index for one stream request."""

    name: str
    seeders: int = Field(default=0, ge=0)
    size: str = ""  # Human readable, as declared by the index
    magnet: Optional[str] = None
    torrent_url: Optional[str] = None
    view_id: Optional[int] = None  # Numeric id from the index permalink

    @property
    def info_hash(self) -> Optional[str]:
        """Content hash from the magnet's ``btih:`` parameter, if any."""
        if not self.magnet:
            return None
        match = _BTIH_RE.search(self.magnet)
        return match.group(1).lower() if match else None

    @property
    def reference(self) -> Optional[str]:
        """What gets handed to the debrid service: magnet first, then .torrent."""
        return self.magnet or self.torrent_url


class UnlockSession(BaseModel):
    """State of one in-flight debrid unlock."""

    torrent_id: str
    status: str = "queued"
    links: List[str] = []
