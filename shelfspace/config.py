"""
Configuration for ShelfSpace

Immutable parameter sets handed to each component at construction.
Nothing in the package reads global mutable configuration.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict


# Alternate tunings of the local detector. "balanced" is the default set
# and equals the DetectionConfig field defaults.
SENSITIVITY_PROFILES: Dict[str, Dict[str, Any]] = {
    "balanced": {},
    "sensitive": {
        "edge_threshold": 20.0,
        "retry_edge_threshold": 12.0,
        "luminance_weight": 0.8,
        "color_weight": 0.2,
        "confidence_floor": 0.15,
        "adaptive_threshold": True,
    },
    "strict": {
        "edge_threshold": 60.0,
        "retry_edge_threshold": 40.0,
        "min_book_width": 15,
        "max_book_width": 70,
        "confidence_floor": 0.3,
        "min_edge_separation": 16,
    },
}


@dataclass(frozen=True)
class DetectionConfig:
    """Parameters of the local segmentation pipeline."""

    # Edge extraction
    edge_threshold: float = 40.0
    retry_edge_threshold: float = 20.0
    sample_step: int = 4
    luminance_weight: float = 0.7
    color_weight: float = 0.3
    min_edge_samples: int = 3
    adaptive_threshold: bool = False

    # Edge filtering
    min_edge_separation: int = 12
    max_edges_per_band: int = 40
    replacement_margin: float = 0.3

    # Shelf segmentation
    shelf_line_threshold: float = 15.0
    shelf_row_step: int = 8
    shelf_column_step: int = 16
    shelf_band_half_height: int = 100
    shelf_merge_distance: int = 80

    # Book extraction
    min_book_width: float = 12
    max_book_width: float = 90
    min_book_height: float = 60
    max_book_height: float = 400
    confidence_floor: float = 0.2
    height_fraction: float = 0.85
    ideal_spine_width: float = 35.0
    width_tolerance: float = 15.0
    width_falloff: float = 55.0
    expected_edge_strength: float = 200.0
    adequate_sample_count: int = 10
    min_symmetry: float = 0.3
    max_books_per_band: int = 20
    dimension_validation: bool = True

    # Bands processed concurrently; 1 runs them inline
    max_workers: int = 1

    def __post_init__(self):
        if self.sample_step < 1:
            raise ValueError("sample_step must be at least 1")
        if self.min_book_width <= 0 or self.min_book_width > self.max_book_width:
            raise ValueError(
                f"Invalid book width range: {self.min_book_width}..{self.max_book_width}"
            )
        if self.min_book_height <= 0 or self.min_book_height > self.max_book_height:
            raise ValueError(
                f"Invalid book height range: {self.min_book_height}..{self.max_book_height}"
            )
        if not 0.0 <= self.confidence_floor <= 1.0:
            raise ValueError("confidence_floor must be within [0, 1]")
        if self.retry_edge_threshold > self.edge_threshold:
            raise ValueError("retry_edge_threshold must not exceed edge_threshold")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @classmethod
    def for_profile(cls, name: str, **overrides) -> "DetectionConfig":
        """Build a config from a named sensitivity profile plus overrides."""
        if name not in SENSITIVITY_PROFILES:
            raise ValueError(
                f"Unknown sensitivity profile '{name}'. "
                f"Available: {', '.join(sorted(SENSITIVITY_PROFILES))}"
            )
        params = dict(SENSITIVITY_PROFILES[name])
        params.update(overrides)
        return cls(**params)


@dataclass(frozen=True)
class StabilizerConfig:
    """Parameters of frame-to-frame smoothing."""

    alpha: float = 0.6
    match_distance: float = 50.0
    confidence_retention: float = 0.8
    min_matched_confidence: float = 0.3
    decay: float = 0.9
    stable_confidence: float = 0.3
    drop_confidence: float = 0.15

    def __post_init__(self):
        if not 0.0 <= self.alpha <= 1.0:
            raise ValueError("alpha must be within [0, 1]")
        if self.match_distance <= 0:
            raise ValueError("match_distance must be positive")


@dataclass(frozen=True)
class AdvisorConfig:
    """Parameters of optimization scoring and frame statistics."""

    shelf_count: int = 2
    max_shelf_depth: float = 250.0
    history_size: int = 5
    stability_window: int = 3


@dataclass(frozen=True)
class ShelfSpaceConfig:
    """Aggregate configuration for a ShelfSpaceService."""

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)
    advisor: AdvisorConfig = field(default_factory=AdvisorConfig)
    detector_timeout: float = 10.0

    def with_detection(self, **overrides) -> "ShelfSpaceConfig":
        """Return a copy with detection parameters overridden."""
        return replace(self, detection=replace(self.detection, **overrides))
