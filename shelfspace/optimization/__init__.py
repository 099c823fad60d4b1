"""
Spatial optimization for ShelfSpace.

Turns stabilized detections into rotate / stack / face-out suggestions
and shelf utilization statistics.
"""

from shelfspace.optimization.advisor import (
    OptimizationAdvisor,
    Suggestion,
    SuggestionKind,
    Assessment,
    Heuristic,
    HEURISTICS,
    ShelfUtilization,
    FrameStats,
)

__all__ = [
    "OptimizationAdvisor",
    "Suggestion",
    "SuggestionKind",
    "Assessment",
    "Heuristic",
    "HEURISTICS",
    "ShelfUtilization",
    "FrameStats",
]
