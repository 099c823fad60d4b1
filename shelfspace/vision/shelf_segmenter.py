"""
Shelf Segmenter

Finds horizontal shelf lines in a frame and turns them into bands that
each hold one shelf's worth of spines.
"""

from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from loguru import logger

from shelfspace.config import DetectionConfig
from shelfspace.vision.pixel_buffer import PixelBuffer


@dataclass(frozen=True)
class ShelfBand:
    """A horizontal slice of the frame hypothesized to contain one shelf."""
    center_y: float
    top_y: int
    bottom_y: int
    strength: float

    @property
    def height(self) -> int:
        return self.bottom_y - self.top_y


class ShelfSegmenter:
    """
    Scan sampled rows for strong horizontal luminance transitions.

    Usage:
        segmenter = ShelfSegmenter(DetectionConfig())
        bands = segmenter.segment(buffer)
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or DetectionConfig()

    def segment(self, buffer: PixelBuffer) -> List[ShelfBand]:
        """
        Split the frame into shelf bands.

        Always returns at least one band: when no shelf line passes the
        threshold, the frame is split into two equal default bands.
        """
        line_rows, line_strengths = self.find_shelf_lines(buffer)

        if len(line_rows) == 0:
            logger.debug("No shelf lines found, using default bands")
            return self.default_bands(buffer.height)

        bands = self._merge_bands(
            [self._band_around(int(y), float(s), buffer.height) for y, s in zip(line_rows, line_strengths)]
        )
        logger.debug(f"Shelf segmentation: {len(line_rows)} line rows -> {len(bands)} bands")
        return bands

    def find_shelf_lines(self, buffer: PixelBuffer):
        """
        Return (rows, strengths) of sampled rows whose mean vertical
        luminance difference exceeds the shelf line threshold.
        """
        cfg = self.config
        step = cfg.sample_step
        height, width = buffer.height, buffer.width

        start = max(int(height * 0.1), step)
        stop = min(int(height * 0.9), height - step)
        rows = np.arange(start, stop, cfg.shelf_row_step)
        cols = np.arange(0, width, cfg.shelf_column_step)

        if rows.size == 0 or cols.size == 0:
            return rows, np.empty(0, dtype=np.float32)

        lum = buffer.luminance
        above = lum[np.ix_(rows - step, cols)]
        below = lum[np.ix_(rows + step, cols)]
        strengths = np.abs(above - below).mean(axis=1)

        passing = strengths > cfg.shelf_line_threshold
        return rows[passing], strengths[passing]

    def _band_around(self, line_y: int, strength: float, image_height: int) -> ShelfBand:
        half = self.config.shelf_band_half_height
        return ShelfBand(
            center_y=float(line_y),
            top_y=max(0, line_y - half),
            bottom_y=min(image_height, line_y + half),
            strength=strength,
        )

    def _merge_bands(self, bands: List[ShelfBand]) -> List[ShelfBand]:
        """Merge bands whose shelf lines lie within the merge distance."""
        merged: List[ShelfBand] = []

        for band in sorted(bands, key=lambda b: b.center_y):
            if merged and band.center_y - merged[-1].center_y <= self.config.shelf_merge_distance:
                last = merged[-1]
                merged[-1] = ShelfBand(
                    center_y=last.center_y,
                    top_y=last.top_y,
                    bottom_y=max(last.bottom_y, band.bottom_y),
                    strength=max(last.strength, band.strength),
                )
            else:
                merged.append(band)

        return merged

    @staticmethod
    def default_bands(image_height: int) -> List[ShelfBand]:
        """Two equal bands covering the top and bottom half of the frame."""
        if image_height < 2:
            return [ShelfBand(center_y=image_height / 2, top_y=0, bottom_y=image_height, strength=0.0)]

        middle = image_height // 2
        return [
            ShelfBand(center_y=middle / 2, top_y=0, bottom_y=middle, strength=0.0),
            ShelfBand(
                center_y=(middle + image_height) / 2,
                top_y=middle,
                bottom_y=image_height,
                strength=0.0,
            ),
        ]
