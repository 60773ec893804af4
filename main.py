import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import Base, engine
from app.responses import install_handlers
from app.routes.articles import router as articles_router
from app.routes.public import router as public_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    logger.info("Creating database tables if they don't exist...")
    Base.metadata.create_all(bind=engine)

    yield

    # --- Shutdown ---
    logger.info("Disposing database engine...")
    engine.dispose()


app = FastAPI(
    title="News Articles API",
    description="Manages news articles with their thumbnails, photo albums and categories.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(articles_router)
app.include_router(public_router)
install_handlers(app)

# Stored thumbnails are served from the storage root, e.g. /storage/thumbnails/<name>.jpg
Path(settings.STORAGE_DIR).mkdir(parents=True, exist_ok=True)
app.mount("/storage", StaticFiles(directory=settings.STORAGE_DIR), name="storage")


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
