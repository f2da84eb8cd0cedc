"""
Code Review Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from code_review_backend import __version__
from code_review_backend.routers import config, review
from code_review_backend.services.config_manager import ConfigManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    logger.info("[Backend] Starting Code Review Backend...")
    config_manager = ConfigManager.get_instance()
    logger.info(
        "[Backend] ConfigManager initialized (%s, provider: %s)",
        config_manager.config_file,
        config_manager.get("provider", "gemini"),
    )

    yield
    logger.info("[Backend] Shutting down Code Review Backend...")


app = FastAPI(
    title="Code Review Backend",
    description="AI review of local git changes for editor plugins",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for editor plugin communication
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Plugin runs locally
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(review.router, prefix="/api/review", tags=["review"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "code-review-backend"}


def run():
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    server = ConfigManager.get_instance().get("server", {})
    uvicorn.run(app, host=server.get("host", "127.0.0.1"), port=server.get("port", 8000))


if __name__ == "__main__":
    run()
