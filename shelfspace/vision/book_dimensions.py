"""
Book Dimensions

Reference table of standard US book and shelf sizes and the validator
that scores measured spines against it. All sizes are pixels at roughly
96 DPI, matching a phone camera held about an arm's length away.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class DimensionRange:
    """Inclusive min/max range with an ideal value."""
    min: float
    ideal: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def closeness(self, value: float) -> float:
        """1.0 at the ideal value, falling linearly across the range."""
        span = self.max - self.min
        if span <= 0:
            return 1.0 if value == self.ideal else 0.0
        return 1 - abs(value - self.ideal) / span


@dataclass(frozen=True)
class BookSizeClass:
    """A known book format."""
    name: str
    width: DimensionRange
    height: DimensionRange
    spine: DimensionRange
    aspect_ratio: DimensionRange
    confidence: float


@dataclass(frozen=True)
class DimensionMatch:
    """Best matching size class for a set of measurements."""
    size_class: BookSizeClass
    score: float
    matches: Dict[str, Optional[bool]]

    @property
    def name(self) -> str:
        return self.size_class.name


@dataclass(frozen=True)
class ShelfMatch:
    """Result of checking a shelf against standard shelf sizes."""
    is_valid: bool
    confidence: float
    estimated_capacity: int
    matches: Dict[str, bool]


BOOK_SIZE_CLASSES: Tuple[BookSizeClass, ...] = (
    BookSizeClass(
        name="mass_market_paperback",
        width=DimensionRange(100, 108, 116),       # 4.25"
        height=DimensionRange(160, 175, 190),      # 6.87"
        spine=DimensionRange(6, 12, 36),           # 0.25"-1.5"
        aspect_ratio=DimensionRange(1.4, 1.6, 2.0),
        confidence=0.9,
    ),
    BookSizeClass(
        name="trade_paperback",
        width=DimensionRange(132, 140, 148),       # 5.5"
        height=DimensionRange(204, 216, 228),      # 8.5"
        spine=DimensionRange(6, 15, 36),
        aspect_ratio=DimensionRange(1.4, 1.55, 1.8),
        confidence=0.95,
    ),
    BookSizeClass(
        name="hardcover",
        width=DimensionRange(144, 153, 162),       # 6"
        height=DimensionRange(216, 229, 242),      # 9"
        spine=DimensionRange(18, 24, 60),          # 0.75"-2.5"
        aspect_ratio=DimensionRange(1.3, 1.5, 1.8),
        confidence=1.0,
    ),
    BookSizeClass(
        name="large_format",
        width=DimensionRange(168, 178, 188),       # 7"
        height=DimensionRange(240, 254, 268),      # 10"
        spine=DimensionRange(18, 30, 60),
        aspect_ratio=DimensionRange(1.3, 1.43, 1.6),
        confidence=0.8,
    ),
    BookSizeClass(
        name="textbook",
        width=DimensionRange(204, 216, 228),       # 8.5"
        height=DimensionRange(264, 280, 296),      # 11"
        spine=DimensionRange(24, 48, 72),          # 1"-3"
        aspect_ratio=DimensionRange(1.2, 1.3, 1.5),
        confidence=0.7,
    ),
)

SHELF_HEIGHT = DimensionRange(203, 242, 280)       # 8"-11"
SHELF_WIDTH = DimensionRange(610, 914, 1219)       # 24"-48"

# Approximate frontage of one upright book
BOOK_FRONTAGE = 25

# Score weights per measurement
_WEIGHTS = {"width": 0.3, "height": 0.3, "aspect_ratio": 0.2, "spine": 0.2}


class DimensionValidator:
    """
    Score measured sizes against the known book formats.

    Usage:
        validator = DimensionValidator()
        match = validator.validate(width=None, height=210, spine_width=24)
        if match:
            print(match.name, match.score)
    """

    def __init__(self, size_classes: Tuple[BookSizeClass, ...] = BOOK_SIZE_CLASSES):
        self.size_classes = size_classes

    def validate(
        self,
        width: Optional[float],
        height: float,
        spine_width: Optional[float] = None,
    ) -> Optional[DimensionMatch]:
        """
        Find the best matching size class.

        Only measurements that fall inside a class's range contribute to
        its score; the score is normalized by the contributing weights and
        scaled by the class's confidence ceiling.

        Args:
            width: Cover width, or None when only the spine is visible
            height: Book height
            spine_width: Spine width, if measured

        Returns:
            Best match, or None if no measurement fits any class
        """
        best: Optional[DimensionMatch] = None
        aspect_ratio = height / width if width else None

        for size_class in self.size_classes:
            measurements = {
                "width": (width, size_class.width),
                "height": (height, size_class.height),
                "aspect_ratio": (aspect_ratio, size_class.aspect_ratio),
                "spine": (spine_width, size_class.spine),
            }

            score = 0.0
            factors = 0.0
            matches: Dict[str, Optional[bool]] = {}

            for key, (value, dim_range) in measurements.items():
                if value is None:
                    matches[key] = None
                    continue
                inside = dim_range.contains(value)
                matches[key] = inside
                if inside:
                    score += dim_range.closeness(value) * _WEIGHTS[key]
                    factors += _WEIGHTS[key]

            if factors == 0:
                continue

            score = (score / factors) * size_class.confidence
            if best is None or score > best.score:
                best = DimensionMatch(size_class=size_class, score=score, matches=matches)

        return best

    def confidence_multiplier(
        self,
        width: Optional[float],
        height: float,
        spine_width: Optional[float] = None,
    ) -> float:
        """0.1 without any match, otherwise the match score floored at 0.3."""
        match = self.validate(width, height, spine_width)
        if match is None:
            return 0.1
        return max(0.3, match.score)

    def validate_shelf(self, width: float, height: float) -> ShelfMatch:
        """Check a shelf against standard shelf sizes."""
        width_valid = SHELF_WIDTH.contains(width)
        height_valid = SHELF_HEIGHT.contains(height)

        confidence = 0.0
        if height_valid:
            confidence += 0.6
        if width_valid:
            confidence += 0.4

        return ShelfMatch(
            is_valid=width_valid or height_valid,
            confidence=confidence,
            estimated_capacity=int(width // BOOK_FRONTAGE),
            matches={"width": width_valid, "height": height_valid},
        )

    def spine_width_range(self) -> Tuple[float, float]:
        return (
            min(c.spine.min for c in self.size_classes),
            max(c.spine.max for c in self.size_classes),
        )

    def book_height_range(self) -> Tuple[float, float]:
        return (
            min(c.height.min for c in self.size_classes),
            max(c.height.max for c in self.size_classes),
        )

