"""
Detection Pipeline for ShelfSpace

Orchestrates the per-frame detection chain:
ShelfSegmenter -> EdgeExtractor -> EdgeFilter -> BookExtractor.
When an external detector is configured and answers in time, its output
substitutes for the local chain.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from shelfspace.config import DetectionConfig
from shelfspace.vision.book_dimensions import DimensionValidator
from shelfspace.vision.book_extractor import BookExtractor
from shelfspace.vision.detection import Detection, SOURCE_EXTERNAL, SOURCE_LOCAL
from shelfspace.vision.edge_extractor import EdgeExtractor, extract_with_retry
from shelfspace.vision.edge_filter import EdgeFilter
from shelfspace.vision.external_detector import ExternalDetector, to_detections
from shelfspace.vision.pixel_buffer import PixelBuffer
from shelfspace.vision.shelf_segmenter import ShelfBand, ShelfSegmenter


@dataclass
class BandResult:
    """Detection output of a single shelf band."""
    band: ShelfBand
    edge_count: int = 0
    threshold: float = 0.0
    retried: bool = False
    detections: List[Detection] = field(default_factory=list)


@dataclass
class PipelineResult:
    """Raw detections of one frame."""
    detections: List[Detection] = field(default_factory=list)
    source_method: str = SOURCE_LOCAL
    bands: List[BandResult] = field(default_factory=list)
    image_shape: tuple = (0, 0, 0)
    inference_time_ms: float = 0.0

    def __len__(self) -> int:
        return len(self.detections)


class DetectionPipeline:
    """
    Per-frame book detection.

    Usage:
        pipeline = DetectionPipeline(DetectionConfig())
        result = pipeline.detect(buffer)

        print(f"Found {len(result)} spines via {result.source_method}")
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        external_detector: Optional[ExternalDetector] = None,
        detector_timeout: float = 10.0,
        validator: Optional[DimensionValidator] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Detection parameters
            external_detector: Optional remote detector tried first by detect_async
            detector_timeout: Seconds before the external detector is abandoned
            validator: Book size validator used to rescale confidences
        """
        self.config = config or DetectionConfig()
        self.external_detector = external_detector
        self.detector_timeout = detector_timeout

        self.segmenter = ShelfSegmenter(self.config)
        self.edge_extractor = EdgeExtractor(self.config)
        self.edge_filter = EdgeFilter(self.config)
        self.book_extractor = BookExtractor(self.config, validator)

    def detect(self, buffer: PixelBuffer) -> PipelineResult:
        """
        Run the local segmentation chain on one frame.

        Args:
            buffer: Frame to analyze

        Returns:
            PipelineResult with detections ordered by band, then x
        """
        start_time = time.time()
        bands = self.segmenter.segment(buffer)

        if self.config.max_workers > 1 and len(bands) > 1:
            # map() keeps band order, so results match the sequential run
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                band_results = list(executor.map(
                    lambda args: self._process_band(buffer, *args),
                    enumerate(bands),
                ))
        else:
            band_results = [self._process_band(buffer, i, band) for i, band in enumerate(bands)]

        detections = [d for result in band_results for d in result.detections]
        total_time = (time.time() - start_time) * 1000

        logger.debug(
            f"Local pipeline: {len(bands)} bands, {len(detections)} spines "
            f"in {total_time:.1f}ms"
        )

        return PipelineResult(
            detections=detections,
            source_method=SOURCE_LOCAL,
            bands=band_results,
            image_shape=buffer.shape,
            inference_time_ms=total_time,
        )

    async def detect_async(self, buffer: PixelBuffer) -> PipelineResult:
        """
        Try the external detector, falling back to the local chain.

        The external call is bounded by `detector_timeout` and cancelled
        when it expires. Nothing from a failed call is kept.
        """
        if self.external_detector is None:
            return self.detect(buffer)

        start_time = time.time()
        try:
            raw = await asyncio.wait_for(
                self.external_detector.detect(buffer),
                timeout=self.detector_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"External detector timed out after {self.detector_timeout:.1f}s, "
                f"using local segmentation"
            )
            return self.detect(buffer)
        except Exception as e:
            logger.warning(f"External detector failed, using local segmentation: {e}")
            return self.detect(buffer)

        detections = to_detections(raw, self.config)
        total_time = (time.time() - start_time) * 1000
        logger.debug(
            f"External detector: {len(detections)} of {len(raw)} boxes kept "
            f"in {total_time:.1f}ms"
        )

        return PipelineResult(
            detections=detections,
            source_method=SOURCE_EXTERNAL,
            image_shape=buffer.shape,
            inference_time_ms=total_time,
        )

    def _process_band(self, buffer: PixelBuffer, index: int, band: ShelfBand) -> BandResult:
        edge_pass = extract_with_retry(self.edge_extractor, buffer, band)
        edges = self.edge_filter.filter(edge_pass.edges)
        detections = self.book_extractor.extract(edges, band, band_index=index)

        return BandResult(
            band=band,
            edge_count=len(edges),
            threshold=edge_pass.threshold,
            retried=edge_pass.retried,
            detections=detections,
        )
