"""Composite addon identifiers of the form ``nyaa:<media id>:<episode>``."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

NAMESPACE = "nyaa"
DELIMITER = ":"


class EpisodeId(BaseModel):
    """Identifies one episode of one AniList media."""

    model_config = ConfigDict(frozen=True)

    media_id: int
    episode: int

    @classmethod
    def parse(cls, value: str) -> Optional["EpisodeId"]:
        """Parse an addon id, returning None for anything malformed."""
        parts = value.split(DELIMITER)
        if len(parts) != 3 or parts[0] != NAMESPACE:
            return None
        try:
            media_id, episode = int(parts[1]), int(parts[2])
        except ValueError:
            return None
        if media_id <= 0 or episode <= 0:
            return None
        return cls(media_id=media_id, episode=episode)

    def __str__(self) -> str:
        return DELIMITER.join((NAMESPACE, str(self.media_id), str(self.episode)))
