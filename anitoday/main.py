import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from anitoday.api.routes_addon import router as addon_router
from anitoday.core.addon_config import UserConfigMiddleware
from anitoday.core.config import get_settings
from anitoday.providers import register_index, registered_indexes
from anitoday.providers.nyaa_provider import NyaaProvider
from anitoday.providers.nyaa_rss_provider import NyaaRSSProvider
from anitoday.services.debrid import get_debrid_client
from anitoday.services.schedule_cache import schedule_cache_lifespan

load_dotenv()

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Application lifespan context manager."""
    try:
        # Refresh the schedule at startup and then periodically
        async with schedule_cache_lifespan(app):
            yield
    finally:
        # Teardown HTTP clients
        for index in registered_indexes():
            try:
                await index.aclose()
            except Exception as e:
                logger.error(f"Error closing index {index.name}: {e}")
        await get_debrid_client().aclose()


# Initialize FastAPI with overarching lifespan
app = FastAPI(
    title="anitoday",
    description="Stremio addon for today's airing anime, streamed from Nyaa",
    version="1.3.0",
    lifespan=app_lifespan,
)

# Stremio clients call the addon cross-origin
app.add_middleware(UserConfigMiddleware)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["GET"])

# Register indexes
register_index(NyaaProvider())
register_index(NyaaRSSProvider())

# Include routers
app.include_router(addon_router)
