"""
Book Extractor

Pairs adjacent filtered edges of a band into candidate spine rectangles
and scores them.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from shelfspace.config import DetectionConfig
from shelfspace.vision.book_dimensions import DimensionValidator
from shelfspace.vision.detection import Detection, SOURCE_LOCAL, clamp_confidence
from shelfspace.vision.edge_extractor import EdgeCandidate
from shelfspace.vision.shelf_segmenter import ShelfBand


# Blend weights: edge strength, width desirability, symmetry, sample adequacy
STRENGTH_WEIGHT = 0.35
WIDTH_WEIGHT = 0.35
SYMMETRY_WEIGHT = 0.15
SAMPLES_WEIGHT = 0.15

MAX_BLENDED_CONFIDENCE = 0.95

# Dimension multiplier that leaves confidence unchanged
NEUTRAL_DIMENSION_SCORE = 0.7

MIN_PAIR_SAMPLES = 3


@dataclass
class SpineScore:
    """Breakdown of a candidate spine's confidence."""
    strength: float
    width: float
    symmetry: float
    samples: float
    blended: float
    dimension_multiplier: Optional[float] = None

    @property
    def confidence(self) -> float:
        if self.dimension_multiplier is None:
            return clamp_confidence(self.blended)
        return clamp_confidence(self.blended * self.dimension_multiplier / NEUTRAL_DIMENSION_SCORE)


class BookExtractor:
    """
    Turn adjacent edge pairs into raw detections.

    Usage:
        extractor = BookExtractor(config)
        books = extractor.extract(edges, band, band_index=0)
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        validator: Optional[DimensionValidator] = None,
    ):
        self.config = config or DetectionConfig()
        self.validator = validator or DimensionValidator()

    def extract(
        self,
        edges: Sequence[EdgeCandidate],
        band: ShelfBand,
        band_index: int = 0,
    ) -> List[Detection]:
        """
        Build detections from x-ordered, filtered edges of one band.

        Returns:
            At most `max_books_per_band` detections ordered by x
        """
        cfg = self.config
        height = band.height * cfg.height_fraction

        if height < cfg.min_book_height:
            logger.debug(f"Band {band_index} height {height:.0f}px too short for books")
            return []

        # Tall bands (high resolution frames) still hold books of bounded height
        height = min(height, cfg.max_book_height)

        y = band.top_y + (band.height - height) / 2
        candidates = []

        for left, right in zip(edges, edges[1:]):
            width = right.x - left.x
            if not cfg.min_book_width <= width <= cfg.max_book_width:
                continue
            if min(left.sample_count, right.sample_count) < MIN_PAIR_SAMPLES:
                continue
            if symmetry_ratio(left, right) < cfg.min_symmetry:
                continue

            score = self.score(left, right, width, height)
            if score.confidence < cfg.confidence_floor:
                continue

            candidates.append((left.x, width, score.confidence))

        # Keep the most confident spines, then restore left-to-right order
        candidates.sort(key=lambda c: c[2], reverse=True)
        candidates = sorted(candidates[:cfg.max_books_per_band], key=lambda c: c[0])

        return [
            Detection.from_geometry(
                id=f"spine_{band_index}_{i}",
                x=float(x),
                y=float(y),
                width=float(width),
                height=float(height),
                confidence=confidence,
                source_method=SOURCE_LOCAL,
            )
            for i, (x, width, confidence) in enumerate(candidates)
        ]

    def score(
        self,
        left: EdgeCandidate,
        right: EdgeCandidate,
        width: float,
        height: float,
    ) -> SpineScore:
        """Multi-factor confidence for one edge pair."""
        cfg = self.config

        strength = min(1.0, (left.strength + right.strength) / cfg.expected_edge_strength)
        width_factor = self.width_desirability(width)
        symmetry = symmetry_factor(left, right)
        samples = min(1.0, min(left.sample_count, right.sample_count) / cfg.adequate_sample_count)

        blended = min(
            MAX_BLENDED_CONFIDENCE,
            strength * STRENGTH_WEIGHT
            + width_factor * WIDTH_WEIGHT
            + symmetry * SYMMETRY_WEIGHT
            + samples * SAMPLES_WEIGHT,
        )

        score = SpineScore(
            strength=strength,
            width=width_factor,
            symmetry=symmetry,
            samples=samples,
            blended=blended,
        )

        if cfg.dimension_validation:
            # Only the spine is visible, so the cover width is unknown
            score.dimension_multiplier = self.validator.confidence_multiplier(
                None, height, spine_width=width
            )

        return score

    def width_desirability(self, width: float) -> float:
        """1.0 near the ideal spine width, falling off linearly to a 0.3 floor."""
        cfg = self.config
        distance = abs(width - cfg.ideal_spine_width)
        if distance <= cfg.width_tolerance:
            return 1.0
        return max(0.3, 1 - (distance - cfg.width_tolerance) / cfg.width_falloff)


def symmetry_ratio(left: EdgeCandidate, right: EdgeCandidate) -> float:
    """Weaker edge strength over stronger edge strength."""
    stronger = max(left.strength, right.strength)
    if stronger <= 0:
        return 0.0
    return min(left.strength, right.strength) / stronger


def symmetry_factor(left: EdgeCandidate, right: EdgeCandidate) -> float:
    """Penalize pairs whose edges differ strongly in strength."""
    mean = (left.strength + right.strength) / 2
    if mean <= 0:
        return 0.1
    return max(0.1, 1 - abs(left.strength - right.strength) / mean)
