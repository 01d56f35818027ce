import logging

from fastapi import FastAPI

from chronicle.api.routes import router
from chronicle.assets.singleton import init_assets

app = FastAPI(title="chronicle", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    assets = init_assets()
    logger.info("Loaded %s timeline events and %s NPC profiles", len(assets.timeline), len(assets.npcs.profiles))


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "chronicle", "version": "0.1.0"}
