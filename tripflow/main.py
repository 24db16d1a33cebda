"""
FastAPI application entry point.

Assembles the FastAPI app with the wizard router.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripflow import __version__
from tripflow.orchestrator.wizard_api import router as wizard_router
from tripflow.services import close_cached_backend
from tripflow.shared.logging import setup_logging


# ============================================================================
# Logging configuration (single source of truth for all modules)
# ============================================================================
LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)-35s | %(message)s"
)

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,  # Override any prior basicConfig calls
)

# Quiet noisy third-party loggers
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

# Step transitions go to their own JSON stream
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_cached_backend()


# Create FastAPI app
app = FastAPI(
    title="Tripflow",
    description="Trip planning wizard orchestrator",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(wizard_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Tripflow",
        "version": __version__,
        "endpoints": {
            "wizard": "/api/wizard",
        },
    }


@app.get("/health")
async def health():
    """Global health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
