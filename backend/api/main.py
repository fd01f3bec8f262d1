"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import resolve
from services.metadata_extractor import register_heif_opener
from settings import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# Register HEIF/HEIC opener at startup (for iPhone photos)
heif_available = register_heif_opener() if settings.HEIF_SUPPORT_ENABLED else False


# Create app
app = FastAPI(
    title="Storefront Resolver API",
    description="Resolve storefront photos to a single real-world place",
    version="0.1.0",
)

# CORS middleware for the capture app
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(resolve.router, prefix="/resolve", tags=["resolve"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Storefront Resolver API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "heif": heif_available}
