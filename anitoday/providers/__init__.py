"""Torrent index transports, keyed by the name the search service asks for."""

from typing import Dict, List

from anitoday.providers.base import TorrentIndex

_indexes: Dict[str, TorrentIndex] = {}


def register_index(index: TorrentIndex) -> None:
    """Make an index available under its ``name``, replacing any previous one."""
    _indexes[index.name] = index


def lookup_index(name: str) -> TorrentIndex | None:
    return _indexes.get(name)


def registered_indexes() -> List[TorrentIndex]:
    """Every registered index, for shutdown."""
    return list(_indexes.values())
