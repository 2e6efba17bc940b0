"""Read-only endpoints mirroring the client cache."""

from .feed import router as feed_router
from .posts import router as posts_router
from .site import router as site_router

__all__ = ["feed_router", "posts_router", "site_router"]
