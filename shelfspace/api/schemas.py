"""
API Schemas for ShelfSpace

Pydantic models for request validation and response serialization.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Frame Analysis
# =============================================================================

class DetectionSchema(CamelModel):
    """A stabilized book detection."""

    id: str
    x: float
    y: float
    width: float
    height: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    estimated_thickness: float
    can_rotate: bool
    can_stack: bool
    volume_efficiency: float
    stable: bool
    source_method: str
    label: Optional[str] = None


class SuggestionSchema(CamelModel):
    """An optimization suggestion anchored next to its book."""

    detection_id: str
    kind: str
    efficiency_gain: float
    volume_gain: float
    anchor_x: float
    anchor_y: float
    description: str = ""


class StatsSchema(CamelModel):
    """Per-frame aggregate statistics."""

    books_found: int
    space_used_percent: int
    potential_gain_percent: int
    detection_stability: int = Field(..., ge=0, le=100)
    suggestion_count: int = 0


class AnalysisResponse(CamelModel):
    """Analysis of one frame of a session."""

    session_id: str
    frame_index: int
    detections: list[DetectionSchema] = Field(default_factory=list)
    suggestions: list[SuggestionSchema] = Field(default_factory=list)
    stats: StatsSchema
    source_method: str
    processing_time_ms: float = 0.0

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "sessionId": "kitchen-shelf",
                "frameIndex": 3,
                "detections": [
                    {
                        "id": "book_0",
                        "x": 100,
                        "y": 50,
                        "width": 40,
                        "height": 150,
                        "confidence": 0.62,
                        "estimatedThickness": 60,
                        "canRotate": False,
                        "canStack": False,
                        "volumeEfficiency": 0.26,
                        "stable": True,
                        "sourceMethod": "local_segmentation",
                        "label": None,
                    }
                ],
                "suggestions": [],
                "stats": {
                    "booksFound": 1,
                    "spaceUsedPercent": 3,
                    "potentialGainPercent": 0,
                    "detectionStability": 100,
                    "suggestionCount": 0,
                },
                "sourceMethod": "local_segmentation",
            }
        }
    )


class RawFrameRequest(CamelModel):
    """Uncompressed RGBA frame."""

    width: int = Field(..., ge=1, le=8192)
    height: int = Field(..., ge=1, le=8192)
    data: str = Field(..., min_length=1, description="Base64 encoded row-major RGBA bytes")
    session_id: str = Field("default", min_length=1, max_length=128)


class SessionResetResponse(CamelModel):
    """Result of dropping a session."""

    session_id: str
    frames_processed: int


# =============================================================================
# System
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Structured error body."""

    error: str
    code: str
    detail: Optional[str] = None
    timestamp: datetime
