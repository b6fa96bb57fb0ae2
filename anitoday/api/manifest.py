"""Addon manifest."""

import copy
import hashlib
import json

from anitoday.core.addon_config import UserConfig
from anitoday.services.addon import CATALOG_ID, CATALOG_TYPE

MANIFEST = {
    "id": "cz.anime.nyaa.rd",
    "version": "1.3.0",
    "name": "Anime Today + Nyaa",
    "description": "Today's airing anime with Nyaa torrents through RealDebrid",
    "resources": ["catalog", "meta", "stream"],
    "types": [CATALOG_TYPE],
    "catalogs": [
        {
            "type": CATALOG_TYPE,
            "id": CATALOG_ID,
            "name": "Anime Today",
            "extra": [{"name": "skip", "isRequired": False}],
        }
    ],
    "idPrefixes": ["nyaa:"],
    "behaviorHints": {"configurable": True, "configurationRequired": False},
}


def build_manifest(config: UserConfig | None = None) -> dict:
    """Return the manifest, personalised when the user supplied a config.

    Personal installs get their own id so Stremio keeps them apart from the
    public addon.
    """
    manifest = copy.deepcopy(MANIFEST)
    if config is None or config.is_empty:
        return manifest

    payload = json.dumps(config.model_dump(exclude_none=True), sort_keys=True)
    digest = hashlib.md5(payload.encode("utf-8")).hexdigest()[:8]
    manifest["id"] = f"{MANIFEST['id']}.{digest}"
    manifest["name"] = "Anime Today (Personal)"
    return manifest
