"""
External Detector

Best-effort object detection service used ahead of the local pipeline.
Any failure here is recovered by the pipeline, so clients only need to
raise DetectorUnavailableError (or let aiohttp errors escape).
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp
import cv2
from loguru import logger

from shelfspace.config import DetectionConfig
from shelfspace.exceptions import DetectorUnavailableError
from shelfspace.vision.detection import Detection, SOURCE_EXTERNAL
from shelfspace.vision.pixel_buffer import PixelBuffer


MIN_EXTERNAL_CONFIDENCE = 0.3
MIN_ASPECT_RATIO = 1.2
MAX_ASPECT_RATIO = 8.0


@dataclass(frozen=True)
class ExternalDetection:
    """A raw box reported by an external detector."""
    x: float
    y: float
    width: float
    height: float
    confidence: float
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExternalDetection":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
            confidence=float(data.get("confidence", 0.0)),
            label=data.get("label") or data.get("class"),
        )


class ExternalDetector(ABC):
    """Abstract base class for external detectors: pixel buffer in, raw boxes out."""

    name = "external"

    @abstractmethod
    async def detect(self, buffer: PixelBuffer) -> List[ExternalDetection]:
        """Detect books in one frame."""
        pass


class HttpDetectorClient(ExternalDetector):
    """
    Client for a remote detection service.

    The frame is sent as a base64 JPEG to the detection endpoint. When a
    refinement endpoint is configured, the raw boxes are sent there for
    boundary refinement; an empty refinement keeps the raw boxes.
    """

    name = "http"

    def __init__(
        self,
        detect_url: str,
        refine_url: Optional[str] = None,
        timeout: float = 10.0,
        jpeg_quality: int = 80,
    ):
        """
        Initialize client.

        Args:
            detect_url: Detection endpoint
            refine_url: Optional boundary refinement endpoint
            timeout: Total timeout per request in seconds
            jpeg_quality: JPEG quality of the uploaded frame
        """
        self.detect_url = detect_url
        self.refine_url = refine_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.jpeg_quality = jpeg_quality

    async def detect(self, buffer: PixelBuffer) -> List[ExternalDetection]:
        image = self.encode_frame(buffer)

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            detections = await self._post(
                session,
                self.detect_url,
                {
                    "image": image,
                    "classes": ["book"],
                    "confidence_threshold": 0.3,
                    "nms_threshold": 0.4,
                },
                key="detections",
            )
            logger.debug(f"External detector returned {len(detections)} boxes")

            if self.refine_url and detections:
                refined = await self._post(
                    session,
                    self.refine_url,
                    {
                        "image": image,
                        "detections": detections,
                        "operations": ["edge_detection", "contour_analysis", "boundary_refinement"],
                    },
                    key="refined_detections",
                )
                detections = refined or detections

        return [ExternalDetection.from_dict(d) for d in detections]

    async def _post(
        self,
        session: aiohttp.ClientSession,
        url: str,
        payload: Dict[str, Any],
        key: str,
    ) -> List[Dict[str, Any]]:
        async with session.post(url, json=payload) as resp:
            if resp.status != 200:
                error_text = await resp.text()
                raise DetectorUnavailableError(
                    self.name, detail=f"{url} returned {resp.status}: {error_text[:200]}"
                )
            data = await resp.json()
        return data.get(key) or []

    def encode_frame(self, buffer: PixelBuffer) -> str:
        """Encode a frame as a JPEG data URL."""
        ok, encoded = cv2.imencode(
            ".jpg", buffer.to_bgr(), [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        )
        if not ok:
            raise DetectorUnavailableError(self.name, detail="Could not encode frame as JPEG")
        return "data:image/jpeg;base64," + base64.b64encode(encoded.tobytes()).decode("ascii")


def is_book_like(raw: ExternalDetection, config: DetectionConfig) -> bool:
    """Size, shape and confidence gate for external boxes."""
    if raw.width <= 0 or raw.height <= 0:
        return False
    aspect_ratio = raw.height / raw.width
    return (
        config.min_book_width <= raw.width <= config.max_book_width
        and config.min_book_height <= raw.height <= config.max_book_height
        and MIN_ASPECT_RATIO < aspect_ratio < MAX_ASPECT_RATIO
        and raw.confidence > MIN_EXTERNAL_CONFIDENCE
    )


def to_detections(raw_detections: List[ExternalDetection], config: DetectionConfig) -> List[Detection]:
    """Convert external boxes into raw detections, dropping non-book shapes."""
    books = []
    for raw in raw_detections:
        if not is_book_like(raw, config):
            continue
        books.append(Detection.from_geometry(
            id=f"external_{len(books)}",
            x=raw.x,
            y=raw.y,
            width=raw.width,
            height=raw.height,
            confidence=raw.confidence,
            source_method=SOURCE_EXTERNAL,
            label=raw.label,
        ))
    return books
