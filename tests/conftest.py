import pytest

from anitoday.models.media import ScheduleEntry


@pytest.fixture
def example_entry():
    return ScheduleEntry(
        media_id=42,
        episode=3,
        airing_at=1_760_000_000,
        title_romaji="Example",
        cover_extra_large="https://img.anili.st/cover/xl.jpg",
        cover_large="https://img.anili.st/cover/l.jpg",
        banner="https://img.anili.st/banner.jpg",
        description="A show.",
        genres=("Action", "Comedy"),
        rating=8.2,
        season="FALL",
        season_year=2026,
    )
