"""API routes for the render service."""

from .render import router as render_router

__all__ = [
    "render_router",
]
