import pytest

from anitoday.services.titles import (
    query_variants,
    strip_season_markers,
    strip_special_characters,
    title_variants,
)


def test_plain_title_has_single_variant():
    """A title with nothing to strip yields exactly one variant."""
    assert title_variants("Frieren") == ["Frieren"]
    assert query_variants("Frieren", 7) == ["Frieren 7"]


@pytest.mark.parametrize(
    "title",
    [
        "Example",
        "Shingeki no Kyojin Season 3 Part 2",
        "Re:Zero kara Hajimeru Isekai Seikatsu 3rd Season",
        "Boku no Hero Academia (2024)",
        "Kaguya-sama: Love is War",
        "(Season 2)",
        ":",
        "  ",
    ],
)
def test_variants_start_verbatim_and_are_never_empty(title):
    variants = title_variants(title)
    if title.strip():
        assert variants[0] == title.strip()
    assert all(v.strip() for v in variants)
    assert len(variants) == len(set(variants))


def test_season_and_part_markers_are_stripped():
    assert strip_season_markers("Shingeki no Kyojin Season 3 Part 2") == "Shingeki no Kyojin"
    assert strip_season_markers("Mushoku Tensei 2nd Season") == "Mushoku Tensei"
    assert strip_season_markers("Oshi no Ko (TV)") == "Oshi no Ko"
    assert strip_season_markers("Re:Zero") == "ReZero"


def test_variants_truncate_at_colon_and_hyphen():
    variants = title_variants("Kaguya-sama: Love is War")
    assert variants[0] == "Kaguya-sama: Love is War"
    assert "Kaguya-sama" in variants
    assert "Kaguya" in variants
    assert "Kaguya sama Love is War" in variants


def test_special_characters_collapse_to_single_spaces():
    assert strip_special_characters("Dr. STONE: Science -- Future!") == "Dr STONE Science Future"


def test_query_variants_append_episode():
    queries = query_variants("Sousou no Frieren: Part 2", 12)
    assert queries[0] == "Sousou no Frieren: Part 2 12"
    assert all(q.endswith(" 12") for q in queries)
    assert "Sousou no Frieren 12" in queries
