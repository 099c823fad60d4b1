"""
Detection model shared by the pipeline, the stabilizer and the advisor.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple


SOURCE_LOCAL = "local_segmentation"
SOURCE_EXTERNAL = "external_detector"

IDEAL_ASPECT_RATIO = 2.5
THICKNESS_RATIO = 0.6


def volume_efficiency(width: float, height: float) -> float:
    """
    Score how close a height/width ratio is to the ideal 2.5.

    Shared by detection (stored on every Detection) and by optimization
    reporting. Always within [0.1, 0.9].
    """
    if width <= 0:
        return 0.1
    aspect_ratio = height / width
    efficiency = 1 - abs(aspect_ratio - IDEAL_ASPECT_RATIO) / IDEAL_ASPECT_RATIO
    return max(0.1, min(0.9, efficiency))


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class Detection:
    """A candidate book spine, raw or stabilized."""
    id: str
    x: float
    y: float
    width: float
    height: float
    confidence: float
    estimated_thickness: float
    can_rotate: bool
    can_stack: bool
    volume_efficiency: float
    stable: bool = False
    source_method: str = SOURCE_LOCAL
    label: Optional[str] = None

    def __post_init__(self):
        if not self.width > 0 or not self.height > 0:
            raise ValueError(
                f"Detection {self.id} needs positive size, got {self.width}x{self.height}"
            )
        self.confidence = clamp_confidence(self.confidence)

    @classmethod
    def from_geometry(
        cls,
        id: str,
        x: float,
        y: float,
        width: float,
        height: float,
        confidence: float,
        source_method: str = SOURCE_LOCAL,
        stable: bool = False,
        label: Optional[str] = None,
    ) -> "Detection":
        """Create a detection, deriving thickness and handling flags from its size."""
        return cls(
            id=id,
            x=x,
            y=y,
            width=width,
            height=height,
            confidence=confidence,
            estimated_thickness=width * THICKNESS_RATIO,
            can_rotate=height < width * 3,
            can_stack=height > 100 and width < 30,
            volume_efficiency=volume_efficiency(width, height),
            stable=stable,
            source_method=source_method,
            label=label,
        )

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def aspect_ratio(self) -> float:
        """Height / Width ratio. Spines typically have high aspect ratio."""
        return self.height / self.width

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
