"""
ShelfSpace - FastAPI Backend.

HTTP surface for frame-by-frame bookshelf analysis.
"""

from .main import create_app, main
from .dependencies import (
    Settings,
    get_settings,
    SessionRegistry,
    get_session_registry,
)
from .schemas import (
    AnalysisResponse,
    DetectionSchema,
    SuggestionSchema,
    StatsSchema,
    RawFrameRequest,
    SessionResetResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    # Application
    "create_app",
    "main",
    # Dependencies
    "Settings",
    "get_settings",
    "SessionRegistry",
    "get_session_registry",
    # Schemas
    "AnalysisResponse",
    "DetectionSchema",
    "SuggestionSchema",
    "StatsSchema",
    "RawFrameRequest",
    "SessionResetResponse",
    "HealthResponse",
    "ErrorResponse",
]
