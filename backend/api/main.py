"""
Fluxi API — FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings
from integrations.base import supported_channel_types

settings = get_settings()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info(
        "Fluxi API starting up",
        version=settings.app_version,
        channel_types=supported_channel_types(),
    )
    yield
    logger.info("Fluxi API shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant inventory backend with channel product staging and import",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Import and register routers
from api.v1.routers import channels, products, sync_logs

app.include_router(channels.router)
app.include_router(products.router)
app.include_router(sync_logs.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
