"""Title normalization for torrent index queries.

Uploaders name the same show in many ways ("Foo Season 2", "Foo S2",
"Foo: The Subtitle"), so every search runs a handful of progressively
looser variants of the catalog title.
"""

import re
from typing import List

_SEASON_MARKERS = [
    re.compile(r"\bSeason\s*\d+\b", re.IGNORECASE),
    re.compile(r"\bPart\s*\d+\b", re.IGNORECASE),
    re.compile(r"\b\d+(?:st|nd|rd|th)\s+Season\b", re.IGNORECASE),
    re.compile(r"\([^)]*\)"),
]
_NON_ALNUM = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def strip_season_markers(title: str) -> str:
    """Remove season/part markers, parenthesized suffixes and colons."""
    for pattern in _SEASON_MARKERS:
        title = pattern.sub("", title)
    return _collapse(title.replace(":", ""))


def strip_special_characters(title: str) -> str:
    return _collapse(_NON_ALNUM.sub(" ", title))


def title_variants(title: str) -> List[str]:
    """Return distinct title variants, most specific first.

    The verbatim title always comes first. Empty variants are dropped.
    """
    verbatim = title.strip()
    candidates = [
        verbatim,
        strip_season_markers(verbatim),
        verbatim.split(":")[0].strip(),
        verbatim.split("-")[0].strip(),
    ]
    no_special = strip_special_characters(verbatim)
    if no_special != verbatim:
        candidates.append(no_special)

    variants: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def query_variants(title: str, episode: int) -> List[str]:
    """Title variants with the episode number appended, ready for the index."""
    return [f"{variant} {episode}" for variant in title_variants(title)]
