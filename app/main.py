"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.responses import FileResponse
from contextlib import asynccontextmanager
from openai import AsyncOpenAI
import logging
import os

from app.core.config import settings
from app.core.logging import setup_logging
from app.db.database import init_db
from app.services.generation.client import GenerationClient
from app.api import auth, career, health, mentor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    app.state.openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
    app.state.generation_client = GenerationClient(
        app.state.openai_client,
        model=settings.openai_model,
        temperature=settings.openai_temperature,
    )
    logger.info(f"Generation client ready - Model: {settings.openai_model}")
    yield
    # Shutdown
    await app.state.generation_client.close()


app = FastAPI(
    title="Career Compass AI",
    description="Career questionnaire, roadmap generation and AI mentor calls",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers (must be before static file mounting to take precedence)
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, tags=["auth"])
app.include_router(career.router, tags=["career"])
app.include_router(mentor.router, tags=["mentor"])

# Mount static files (for frontend)
static_dir = os.path.join(os.path.dirname(__file__), "static")
if os.path.exists(static_dir):
    # Mount assets directory at /assets path
    assets_dir = os.path.join(static_dir, "assets")
    if os.path.exists(assets_dir):
        app.mount("/assets", StaticFiles(directory=assets_dir), name="assets")


@app.get("/")
async def root():
    """Serve frontend index.html."""
    index_path = os.path.join(static_dir, "index.html")
    if os.path.exists(index_path):
        return FileResponse(index_path)
    return {
        "message": "Career Compass AI API",
        "version": "0.1.0",
        "frontend": "Frontend not built. Run 'npm run build' in the frontend directory.",
    }
