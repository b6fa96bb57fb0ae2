from unittest.mock import AsyncMock, MagicMock, patch
from urllib.parse import quote

import pytest

from anitoday.models.media import ScheduleSnapshot, TorrentCandidate
from anitoday.services import addon
from anitoday.services.debrid import PollPolicy, RealDebridClient
from tests.fakes import FakeIndex, magnet


@pytest.fixture
def snapshot(example_entry):
    return ScheduleSnapshot.build([example_entry])


def test_catalog_lists_snapshot(snapshot):
    metas = addon.catalog(snapshot, "series", "anime-today")

    assert len(metas) == 1
    item = metas[0].to_json()
    assert item["id"] == "nyaa:42:3"
    assert item["name"] == "Example"
    assert item["poster"] == "https://img.anili.st/cover/xl.jpg"
    assert item["background"] == "https://img.anili.st/banner.jpg"
    assert item["description"].startswith("Episode 3\n\n")
    assert item["releaseInfo"] == "FALL 2026 - Ep 3"
    assert item["imdbRating"] == "8.2"
    assert item["genres"] == ["Action", "Comedy"]


def test_catalog_does_not_paginate(snapshot):
    assert addon.catalog(snapshot, "series", "anime-today", skip=100) == []
    assert addon.catalog(snapshot, "movie", "anime-today") == []
    assert addon.catalog(snapshot, "series", "other") == []


def test_catalog_prefers_enrichment_poster_and_placeholder(example_entry):
    enriched = example_entry.model_copy(
        update={"tmdb_poster": "https://image.tmdb.org/p.jpg", "kitsu_id": "9"}
    )
    bare = example_entry.model_copy(
        update={"media_id": 43, "cover_extra_large": None, "cover_large": None, "banner": None}
    )
    metas = addon.catalog(ScheduleSnapshot.build([enriched, bare]), "series", "anime-today")

    assert metas[0].poster == "https://image.tmdb.org/p.jpg"
    assert metas[0].alternate_ids == ["kitsu:9"]
    assert metas[1].poster == addon.PLACEHOLDER_POSTER
    assert metas[1].background == addon.PLACEHOLDER_POSTER


def test_meta_has_single_episode(snapshot):
    result = addon.meta(snapshot, "nyaa:42:3").to_json()

    assert result["id"] == "nyaa:42:3"
    video = result["videos"][0]
    assert video["episode"] == 3
    assert video["season"] == 1
    assert video["released"] == "2025-10-09T08:53:20Z"
    assert video["thumbnail"] == result["poster"]


@pytest.mark.parametrize("item_id", ["nyaa:99:1", "nyaa:42", "foo:42:3"])
def test_meta_not_found(snapshot, item_id):
    assert addon.meta(snapshot, item_id) is None


@pytest.mark.asyncio
async def test_streams_for_unknown_episode_are_empty(snapshot):
    with patch("anitoday.services.addon.search_torrents", new_callable=AsyncMock) as mock_search:
        assert await addon.streams(snapshot, "nyaa:99:1") == []
        mock_search.assert_not_called()


@pytest.mark.asyncio
async def test_streams_without_token_are_raw_magnets(snapshot):
    index = FakeIndex(
        {
            ("Example 3", 1): [
                TorrentCandidate(name="A", seeders=10, size="1 GiB", magnet=magnet("dead")),
                TorrentCandidate(name="B", seeders=50, size="2 GiB", magnet=magnet("dead")),
            ]
        }
    )
    with patch("anitoday.services.search.get_index", return_value=index):
        streams = [s.to_json() for s in await addon.streams(snapshot, "nyaa:42:3")]

    assert index.queries[0] == ("Example 3", 1)
    assert len(streams) == 1
    assert streams[0]["url"] == magnet("dead")
    assert streams[0]["behaviorHints"] == {"notWebReady": True}
    assert "👥 10" in streams[0]["title"]


@pytest.mark.asyncio
async def test_streams_fall_back_to_english_title(example_entry):
    entry = example_entry.model_copy(update={"title_english": "Example EN"})
    found = [TorrentCandidate(name="EN", magnet=magnet("01"))]

    with patch(
        "anitoday.services.addon.search_torrents", new_callable=AsyncMock
    ) as mock_search:
        mock_search.side_effect = [[], found]
        streams = await addon.streams(ScheduleSnapshot.build([entry]), "nyaa:42:3")

    assert [c.args for c in mock_search.call_args_list] == [("Example", 3), ("Example EN", 3)]
    assert len(streams) == 1


@pytest.mark.asyncio
async def test_lazy_streams_point_at_redirect_endpoint(snapshot):
    candidate = TorrentCandidate(name="A", seeders=3, magnet=magnet("aa"))
    with patch(
        "anitoday.services.addon.search_torrents", new_callable=AsyncMock
    ) as mock_search:
        mock_search.return_value = [candidate]
        streams = await addon.streams(snapshot, "nyaa:42:3", token="tok", timing="lazy")

    stream = streams[0].to_json()
    assert stream["name"] == "Nyaa + RealDebrid"
    assert stream["url"] == f"http://localhost:7000/rd/{quote(magnet('aa'), safe='')}?key=tok"
    assert stream["behaviorHints"] == {"bingeGroup": "nyaa-rd"}


@pytest.mark.asyncio
async def test_eager_streams_use_direct_links(snapshot):
    candidates = [
        TorrentCandidate(name="A", seeders=9, magnet=magnet("aa")),
        TorrentCandidate(name="B", seeders=5, magnet=magnet("bb")),
    ]
    debrid = MagicMock()
    debrid.unlock = AsyncMock(side_effect=["https://dl.rd.test/a.mkv", None])

    with patch(
        "anitoday.services.addon.search_torrents", new_callable=AsyncMock
    ) as mock_search:
        mock_search.return_value = candidates
        streams = await addon.streams(
            snapshot, "nyaa:42:3", token="tok", timing="eager", debrid=debrid
        )

    assert streams[0].url == "https://dl.rd.test/a.mkv"
    assert streams[1].url == magnet("bb")
    assert streams[1].behavior_hints.not_web_ready is True


@pytest.mark.asyncio
async def test_eager_stream_falls_back_when_polling_runs_out(snapshot):
    """Submission and file selection succeed but the job never gets links."""
    debrid = RealDebridClient(
        base_url="https://rd.test/rest/1.0",
        poll_policy=PollPolicy(interval=2.0, max_attempts=3),
        sleep=AsyncMock(),
    )

    async def backend(method, path, token, timeout=None, **kwargs):
        if path == "/torrents/addMagnet":
            return {"id": "TID"}
        if path.startswith("/torrents/selectFiles/"):
            return None
        return {"status": "downloading", "links": []}

    candidate = TorrentCandidate(name="A", seeders=9, magnet=magnet("aa"))
    with (
        patch.object(debrid, "_request", new_callable=AsyncMock) as mock_request,
        patch("anitoday.services.addon.search_torrents", new_callable=AsyncMock) as mock_search,
    ):
        mock_request.side_effect = backend
        mock_search.return_value = [candidate]
        assert await addon.resolve(candidate.magnet, "tok", debrid=debrid) is None
        streams = await addon.streams(
            snapshot, "nyaa:42:3", token="tok", timing="eager", debrid=debrid
        )

    stream = streams[0].to_json()
    assert stream["url"] == magnet("aa")
    assert stream["behaviorHints"]["notWebReady"] is True


@pytest.mark.asyncio
async def test_torrent_file_only_candidates_need_a_token(snapshot):
    candidates = [
        TorrentCandidate(name="magnet", seeders=9, magnet=magnet("aa")),
        TorrentCandidate(
            name="file only", seeders=5, torrent_url="https://nyaa.si/download/2.torrent"
        ),
    ]
    with patch(
        "anitoday.services.addon.search_torrents", new_callable=AsyncMock
    ) as mock_search:
        mock_search.return_value = candidates
        anonymous = await addon.streams(snapshot, "nyaa:42:3")
        with_token = await addon.streams(snapshot, "nyaa:42:3", token="tok", timing="lazy")

    assert [s.url for s in anonymous] == [magnet("aa")]
    assert len(with_token) == 2
    assert with_token[1].url.startswith("http://localhost:7000/rd/https%3A%2F%2Fnyaa.si")


@pytest.mark.asyncio
async def test_native_title_is_never_searched(example_entry):
    entry = example_entry.model_copy(
        update={"title_romaji": None, "title_english": None, "title_native": "例"}
    )
    with patch(
        "anitoday.services.addon.search_torrents", new_callable=AsyncMock
    ) as mock_search:
        assert await addon.streams(ScheduleSnapshot.build([entry]), "nyaa:42:3") == []
        mock_search.assert_not_called()
