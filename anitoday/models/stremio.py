"""Response shapes of the Stremio addon protocol."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StremioModel(BaseModel):
    """Base model serialising field names in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Video(StremioModel):
    """One episode listed on a meta page."""

    id: str
    title: str
    episode: int
    season: int = 1
    released: str  # ISO-8601
    thumbnail: Optional[str] = None


class Meta(StremioModel):
    """A catalog item, or a full meta when ``videos`` is set."""

    id: str
    type: str = "series"
    name: str
    poster: str
    background: Optional[str] = None
    logo: Optional[str] = None
    description: str = ""
    genres: List[str] = []
    release_info: Optional[str] = None
    imdb_rating: Optional[str] = None
    alternate_ids: Optional[List[str]] = None
    videos: Optional[List[Video]] = None


class BehaviorHints(StremioModel):
    not_web_ready: Optional[bool] = None
    binge_group: Optional[str] = None


class Stream(StremioModel):
    """A playable source for an episode."""

    name: str
    title: str
    url: str
    behavior_hints: Optional[BehaviorHints] = None
