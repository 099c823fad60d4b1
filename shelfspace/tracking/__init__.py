"""
Temporal tracking for ShelfSpace.

- Frame-to-frame stabilization of detections
- Rolling detection history and stability score
"""

from shelfspace.tracking.stabilizer import (
    TemporalStabilizer,
    StabilizationResult,
    AmbiguousMatch,
    TIE,
    CONTESTED,
)
from shelfspace.tracking.history import DetectionHistory

__all__ = [
    "TemporalStabilizer",
    "StabilizationResult",
    "AmbiguousMatch",
    "TIE",
    "CONTESTED",
    "DetectionHistory",
]
