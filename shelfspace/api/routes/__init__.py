"""
API Routes for ShelfSpace

Route modules:
- frames: Frame upload, analysis and session reset
"""

from shelfspace.api.routes.frames import router as frames_router

__all__ = [
    "frames_router",
]
