"""
Edge Extractor

Finds vertical luminance/color discontinuities ("spine edges") inside a
shelf band.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger

from shelfspace.config import DetectionConfig
from shelfspace.vision.pixel_buffer import PixelBuffer
from shelfspace.vision.shelf_segmenter import ShelfBand


@dataclass(frozen=True)
class EdgeCandidate:
    """A column with aggregated discontinuity strength within one band."""
    x: int
    strength: float
    sample_count: int
    max_strength: float = 0.0


@dataclass
class EdgePass:
    """Outcome of the two-pass extraction strategy."""
    edges: List[EdgeCandidate] = field(default_factory=list)
    threshold: float = 0.0
    attempts: int = 0

    @property
    def retried(self) -> bool:
        return self.attempts > 1


class EdgeExtractor:
    """
    Column-wise vertical edge scanner.

    For every sampled column the extractor compares the pixels `step`
    to the left and right of it at rows in the middle 80% of the band,
    and keeps the columns whose mean strength passes the threshold.
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def extract(
        self,
        buffer: PixelBuffer,
        band: ShelfBand,
        threshold: Optional[float] = None,
    ) -> List[EdgeCandidate]:
        """
        Extract edge candidates for one band.

        Args:
            buffer: Frame to scan
            band: Band limiting the rows that are sampled
            threshold: Override of the configured edge threshold

        Returns:
            Candidates ordered by x
        """
        cfg = self.config
        step = cfg.sample_step
        threshold = cfg.edge_threshold if threshold is None else threshold

        strengths, cols = self.column_strengths(buffer, band)
        if strengths.size == 0:
            return []

        valid = strengths > 0
        counts = valid.sum(axis=0)
        totals = strengths.sum(axis=0)
        peaks = strengths.max(axis=0)

        edges = []
        for i, x in enumerate(cols):
            samples = int(counts[i])
            if samples == 0:
                continue

            mean_strength = float(totals[i]) / samples
            column_threshold = threshold
            if cfg.adaptive_threshold:
                column_threshold = adaptive_threshold(threshold, float(peaks[i]), mean_strength)

            if mean_strength > column_threshold and samples >= cfg.min_edge_samples:
                edges.append(EdgeCandidate(
                    x=int(x),
                    strength=mean_strength,
                    sample_count=samples,
                    max_strength=float(peaks[i]),
                ))

        logger.debug(
            f"Band {band.top_y}-{band.bottom_y}: {len(edges)} edges "
            f"of {len(cols)} columns (threshold {threshold:.1f}, step {step})"
        )
        return edges

    def column_strengths(self, buffer: PixelBuffer, band: ShelfBand):
        """
        Per-sample edge strengths for a band.

        Returns:
            (strengths, cols) where strengths has shape (rows, len(cols))
        """
        cfg = self.config
        step = cfg.sample_step

        margin = band.height * 0.1
        start = int(np.ceil(band.top_y + margin))
        stop = int(np.floor(band.bottom_y - margin))
        rows = np.arange(start, stop, step)
        rows = rows[(rows >= 0) & (rows < buffer.height)]
        cols = np.arange(step, buffer.width - step, step)

        if rows.size == 0 or cols.size == 0:
            return np.empty((0, 0), dtype=np.float32), cols

        left_lum = buffer.luminance[np.ix_(rows, cols - step)]
        right_lum = buffer.luminance[np.ix_(rows, cols + step)]
        gradient = np.abs(left_lum - right_lum)

        left_rgb = buffer.rgb[np.ix_(rows, cols - step)]
        right_rgb = buffer.rgb[np.ix_(rows, cols + step)]
        color_distance = np.sqrt(((left_rgb - right_rgb) ** 2).sum(axis=2))

        strengths = cfg.luminance_weight * gradient + cfg.color_weight * color_distance
        return strengths, cols


def adaptive_threshold(base: float, max_strength: float, mean_strength: float) -> float:
    """Lower the threshold for high-contrast columns, raise it for flat ones."""
    contrast = max_strength / (mean_strength + 1)
    if contrast > 3:
        return base * 0.8
    if contrast < 1.5:
        return base * 1.2
    return base


def extract_with_retry(
    extractor: EdgeExtractor,
    buffer: PixelBuffer,
    band: ShelfBand,
    thresholds: Optional[Sequence[float]] = None,
) -> EdgePass:
    """
    Two-pass edge extraction.

    Tries each threshold in order and stops at the first one that yields
    any edge. By default that is the configured edge threshold followed
    by the looser retry threshold.
    """
    if thresholds is None:
        cfg = extractor.config
        thresholds = (cfg.edge_threshold, cfg.retry_edge_threshold)

    result = EdgePass()
    for attempt, threshold in enumerate(thresholds, start=1):
        result = EdgePass(
            edges=extractor.extract(buffer, band, threshold=threshold),
            threshold=threshold,
            attempts=attempt,
        )
        if result.edges:
            break
        if attempt < len(thresholds):
            logger.debug(f"No edges at threshold {threshold:.1f}, retrying with a looser one")

    return result
