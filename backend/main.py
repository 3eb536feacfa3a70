"""FastAPI application serving the live wind rose and its reading history."""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from backend.config import settings
from backend.api.routes import readings, history, rose
from backend.api.dependencies import get_rose_service
from backend.services.rose_service import RoseService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the history log and backfill the live rose on startup; save on shutdown."""
    provider = app.dependency_overrides.get(get_rose_service, get_rose_service)
    rose_service = provider()
    rose_service.history_log.load()
    if settings.preload_on_startup:
        rose_service.preload_from_log()
    yield
    try:
        rose_service.history_log.save()
    except OSError as e:
        logger.warning("Could not save history on shutdown: %s", e)

# Count grids and history payloads are serialized with orjson
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    redirect_slashes=False,
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(readings.router)
app.include_router(history.router)
app.include_router(rose.router)


@app.get("/")
async def root(rose_service: RoseService = Depends(get_rose_service)):
    """Describe the API and the rose it serves."""
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "rose": rose_service.rose.name,
        "docs": "/docs",
    }


@app.get("/health")
async def health(rose_service: RoseService = Depends(get_rose_service)):
    """Health check, including the state of the last history preload."""
    error = rose_service.preload_error
    return {
        "status": "unhealthy" if error else "healthy",
        "readings": rose_service.rose.total,
        "history": len(rose_service.history_log),
        "preloading": rose_service.rose.preloading,
        "preload_error": repr(error) if error else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
