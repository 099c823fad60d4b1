"""
ShelfSpace Service

Runs one frame through detection, stabilization and optimization.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from shelfspace.config import ShelfSpaceConfig
from shelfspace.exceptions import InvalidBufferError
from shelfspace.optimization.advisor import FrameStats, OptimizationAdvisor, Suggestion
from shelfspace.tracking.history import DetectionHistory
from shelfspace.tracking.stabilizer import AmbiguousMatch, TemporalStabilizer
from shelfspace.vision.detection import Detection
from shelfspace.vision.external_detector import ExternalDetector
from shelfspace.vision.pipeline import DetectionPipeline, PipelineResult
from shelfspace.vision.pixel_buffer import PixelBuffer


@dataclass
class FrameAnalysis:
    """Result of analyzing one frame."""
    detections: List[Detection] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)
    stats: FrameStats = field(default_factory=FrameStats)
    source_method: str = ""
    ambiguous_matches: List[AmbiguousMatch] = field(default_factory=list)
    frame_index: int = 0
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the output contract shape."""
        return {
            "detections": [
                {
                    "id": d.id,
                    "x": d.x,
                    "y": d.y,
                    "width": d.width,
                    "height": d.height,
                    "confidence": d.confidence,
                    "estimatedThickness": d.estimated_thickness,
                    "canRotate": d.can_rotate,
                    "canStack": d.can_stack,
                    "volumeEfficiency": d.volume_efficiency,
                    "stable": d.stable,
                    "sourceMethod": d.source_method,
                    "label": d.label,
                }
                for d in self.detections
            ],
            "suggestions": [
                {
                    "detectionId": s.detection_id,
                    "kind": s.kind.value,
                    "efficiencyGain": s.efficiency_gain,
                    "volumeGain": s.volume_gain,
                    "anchorX": s.anchor_x,
                    "anchorY": s.anchor_y,
                    "description": s.description,
                }
                for s in self.suggestions
            ],
            "stats": self.stats.to_dict(),
            "sourceMethod": self.source_method,
        }


class ShelfSpaceService:
    """
    Frame-by-frame bookshelf analysis.

    One instance owns one stabilizer state, so frames of the same camera
    stream must go through the same service one at a time.

    Usage:
        service = ShelfSpaceService()
        for frame in frames:
            analysis = service.process_frame(PixelBuffer.from_bgr(frame))
            print(analysis.stats.books_found)
    """

    def __init__(
        self,
        config: Optional[ShelfSpaceConfig] = None,
        external_detector: Optional[ExternalDetector] = None,
    ):
        """
        Initialize service.

        Args:
            config: Aggregate configuration
            external_detector: Optional detector tried before local segmentation
        """
        self.config = config or ShelfSpaceConfig()
        self.pipeline = DetectionPipeline(
            self.config.detection,
            external_detector=external_detector,
            detector_timeout=self.config.detector_timeout,
        )
        self.stabilizer = TemporalStabilizer(self.config.stabilizer)
        self.advisor = OptimizationAdvisor(self.config.advisor)
        self.history = DetectionHistory(
            max_size=self.config.advisor.history_size,
            window=self.config.advisor.stability_window,
        )
        self._frames = 0

    @property
    def frame_count(self) -> int:
        return self._frames

    def process_frame(self, buffer: PixelBuffer) -> FrameAnalysis:
        """
        Analyze a frame with the local segmentation pipeline.

        Raises:
            InvalidBufferError: The buffer is unusable; carried state is untouched
        """
        start_time = time.time()
        self._check_buffer(buffer)
        return self._finish(buffer, self.pipeline.detect(buffer), start_time)

    async def process_frame_async(self, buffer: PixelBuffer) -> FrameAnalysis:
        """
        Analyze a frame, trying the external detector first.

        Raises:
            InvalidBufferError: The buffer is unusable; carried state is untouched
        """
        start_time = time.time()
        self._check_buffer(buffer)
        return self._finish(buffer, await self.pipeline.detect_async(buffer), start_time)

    def reset(self) -> None:
        """Forget all carried detections and history."""
        self.stabilizer.reset()
        self.history.clear()
        self._frames = 0
        logger.info("ShelfSpace service state reset")

    def _check_buffer(self, buffer: PixelBuffer) -> None:
        if not isinstance(buffer, PixelBuffer):
            raise InvalidBufferError(f"Expected PixelBuffer, got {type(buffer).__name__}")

    def _finish(self, buffer: PixelBuffer, raw: PipelineResult, start_time: float) -> FrameAnalysis:
        stabilized = self.stabilizer.update(raw.detections)
        detections = stabilized.detections

        self.history.record(start_time, len(detections), raw.source_method)
        self._frames += 1

        suggestions = self.advisor.suggest(detections)
        stats = self.advisor.frame_stats(
            detections,
            frame_width=buffer.width,
            frame_height=buffer.height,
            stability=self.history.stability(),
            suggestion_count=len(suggestions),
        )

        total_time = (time.time() - start_time) * 1000
        logger.info(
            f"Frame {self._frames}: {stats.books_found} books, "
            f"{len(suggestions)} suggestions via {raw.source_method} ({total_time:.1f}ms)"
        )

        return FrameAnalysis(
            detections=detections,
            suggestions=suggestions,
            stats=stats,
            source_method=raw.source_method,
            ambiguous_matches=stabilized.ambiguous,
            frame_index=self._frames,
            processing_time_ms=total_time,
        )
