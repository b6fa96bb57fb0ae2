from unittest.mock import AsyncMock, patch

import pytest

from anitoday.services.anilist import AniListClient, AniListError, parse_schedule, strip_html

RAW_SCHEDULE = {
    "id": 1,
    "airingAt": 1_760_000_000,
    "episode": 3,
    "media": {
        "id": 42,
        "title": {"romaji": "Example", "english": "Example EN", "native": "例"},
        "coverImage": {"extraLarge": "https://img/xl.jpg", "large": "https://img/l.jpg"},
        "bannerImage": None,
        "description": "First line.<br>\n<i>Second</i> &amp; last.",
        "genres": ["Action"],
        "averageScore": 76,
        "season": "FALL",
        "seasonYear": 2026,
    },
}


def test_strip_html():
    assert strip_html("<b>Bold</b> &amp; <i>plain</i>") == "Bold & plain"
    assert strip_html(None) == ""


def test_parse_schedule():
    entry = parse_schedule(RAW_SCHEDULE)

    assert entry.media_id == 42
    assert entry.episode == 3
    assert entry.display_title == "Example"
    assert entry.rating == 7.6
    assert entry.banner is None
    assert entry.description == "First line.\nSecond & last."
    assert entry.genres == ("Action",)


def test_parse_schedule_display_title_falls_back():
    raw = {**RAW_SCHEDULE, "media": {**RAW_SCHEDULE["media"], "title": {"native": "例"}}}
    assert parse_schedule(raw).display_title == "例"


def test_parse_schedule_rejects_malformed_items():
    assert parse_schedule({"id": 2, "episode": 1}) is None
    assert parse_schedule({**RAW_SCHEDULE, "episode": 0}) is None
    assert parse_schedule("garbage") is None


@pytest.mark.asyncio
async def test_fetch_schedules_follows_pages():
    client = AniListClient()
    pages = [
        {"pageInfo": {"hasNextPage": True}, "airingSchedules": [RAW_SCHEDULE]},
        {"pageInfo": {"hasNextPage": False}, "airingSchedules": [RAW_SCHEDULE]},
    ]
    with patch.object(client, "_query_page", new_callable=AsyncMock) as mock_query:
        mock_query.side_effect = pages
        schedules = await client.fetch_schedules(0, 86400)

    assert len(schedules) == 2
    assert [c.args[0] for c in mock_query.call_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_fetch_entries_propagates_failures():
    client = AniListClient()
    with patch.object(client, "_query_page", new_callable=AsyncMock) as mock_query:
        mock_query.side_effect = AniListError("down")
        with pytest.raises(AniListError):
            await client.fetch_entries(0, 86400)


@pytest.mark.asyncio
async def test_fetch_entries_with_empty_day():
    client = AniListClient()
    with patch.object(client, "_query_page", new_callable=AsyncMock) as mock_query:
        mock_query.return_value = {"pageInfo": {"hasNextPage": False}, "airingSchedules": []}
        assert await client.fetch_entries(0, 86400) == []
