# src/civic_stage/main.py
"""Main entry point for the Civic Stage read-only API."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from civic_stage import __version__
from civic_stage.api.v1 import feed_router, posts_router, site_router
from civic_stage.core.settings import settings
from civic_stage.db.session import create_tables
from civic_stage.sync.context import AppContext

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Read-only mirror of the civic feed",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(feed_router, prefix="/api/v1")
app.include_router(posts_router, prefix="/api/v1")
app.include_router(site_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if getattr(app.state, "context", None) is not None:
        return
    create_tables()
    context = AppContext(settings)
    await context.start()
    app.state.context = context


@app.on_event("shutdown")
async def on_shutdown() -> None:
    context: AppContext | None = getattr(app.state, "context", None)
    if context:
        await context.close()
        app.state.context = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "description": "Read-only mirror of the civic feed",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("civic_stage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
