"""Stremio addon routes."""

import logging
from typing import Annotated
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from anitoday.api.manifest import build_manifest
from anitoday.core.addon_config import UserConfig, get_user_config
from anitoday.core.config import get_settings
from anitoday.services import addon
from anitoday.services.debrid import is_supported_reference
from anitoday.services.schedule_cache import schedule_cache

router = APIRouter()
logger = logging.getLogger(__name__)

Config = Annotated[UserConfig, Depends(get_user_config)]


def _parse_skip(value: str | None) -> int:
    try:
        return max(int(value), 0) if value else 0
    except ValueError:
        return 0


@router.get("/manifest.json")
async def manifest(config: Config):
    """Addon manifest, personalised when a config is present."""
    if not config.is_empty:
        logger.info(
            f"Custom manifest with config: {'RD+' if config.rd else ''}"
            f"{'TMDB' if config.tmdb else ''}"
        )
    return build_manifest(config)


@router.get("/catalog/{type}/{catalog_id}.json")
async def catalog(type: str, catalog_id: str, skip: str | None = Query(None)):
    metas = addon.catalog(
        schedule_cache.current(), type, catalog_id, _parse_skip(skip)
    )
    return {"metas": [m.to_json() for m in metas]}


@router.get("/catalog/{type}/{catalog_id}/{extra}.json")
async def catalog_with_extra(type: str, catalog_id: str, extra: str):
    """Catalog with Stremio's path-encoded extras, e.g. ``skip=100``."""
    skip = parse_qs(extra).get("skip", [None])[0]
    metas = addon.catalog(
        schedule_cache.current(), type, catalog_id, _parse_skip(skip)
    )
    return {"metas": [m.to_json() for m in metas]}


@router.get("/meta/{type}/{item_id}.json")
async def meta(type: str, item_id: str):
    result = addon.meta(schedule_cache.current(), item_id)
    return {"meta": result.to_json() if result else None}


@router.get("/stream/{type}/{item_id}.json")
async def stream(type: str, item_id: str, config: Config):
    streams = await addon.streams(schedule_cache.current(), item_id, token=config.rd)
    return {"streams": [s.to_json() for s in streams]}


@router.get("/rd/{reference:path}")
async def resolve(reference: str, config: Config, key: str | None = Query(None)):
    """Unlock a magnet or index torrent through RealDebrid and redirect to the direct link."""
    token = key or config.rd
    if not token:
        raise HTTPException(status_code=400, detail="API key required")
    if not is_supported_reference(reference, get_settings().index_base_url):
        raise HTTPException(status_code=400, detail="Unsupported reference")

    url = await addon.resolve(reference, token)
    if not url:
        raise HTTPException(status_code=502, detail="Failed")
    return RedirectResponse(url, status_code=302)


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    snapshot = schedule_cache.current()
    return {
        "status": "ok",
        "service": "anitoday",
        "entries": len(snapshot),
        "refreshed_at": snapshot.refreshed_at.isoformat()
        if snapshot.refreshed_at
        else None,
    }
