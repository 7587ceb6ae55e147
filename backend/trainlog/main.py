"""
TrainLog Backend - FastAPI Application
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trainlog.core.config import settings
from trainlog.core.logging import setup_logging, get_logger
from trainlog.api import progress
from trainlog.services.cache import ProgressCacheCoordinator
from trainlog.services.progress import ProgressRepository, ProgressService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger.info(
        "Starting TrainLog Backend",
        version="1.0.0",
        repository_configured=app.state.progress_service is not None,
    )
    
    yield
    
    # Shutdown
    logger.info("Shutting down TrainLog Backend")


def create_app(
    repository: Optional[ProgressRepository] = None,
    cache: Optional[ProgressCacheCoordinator] = None,
) -> FastAPI:
    """
    Build the application.
    
    Args:
        repository: Persistence collaborator supplied by the host; without
            one the progress endpoints answer 503
        cache: Document cache, the process-wide coordinator by default
    """
    app = FastAPI(
        title="TrainLog API",
        description="Personal records, adherence streaks and cached progress documents",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.progress_service = ProgressService(repository, cache=cache) if repository is not None else None
    
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    # Include routers
    app.include_router(progress.router, prefix="/api/progress", tags=["progress"])
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "trainlog-backend"}
    
    return app


app = create_app()
