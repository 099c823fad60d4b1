"""
Computer Vision Module for ShelfSpace

This module turns a raw frame into candidate book spines:
- Pixel buffer wrapping
- Shelf band segmentation
- Vertical spine edge extraction and suppression
- Spine pairing, scoring and book size validation
- External detector integration with local fallback
"""

from shelfspace.vision.pixel_buffer import PixelBuffer
from shelfspace.vision.detection import Detection, volume_efficiency, SOURCE_LOCAL, SOURCE_EXTERNAL
from shelfspace.vision.shelf_segmenter import ShelfSegmenter, ShelfBand
from shelfspace.vision.edge_extractor import EdgeExtractor, EdgeCandidate, EdgePass, extract_with_retry
from shelfspace.vision.edge_filter import EdgeFilter
from shelfspace.vision.book_dimensions import DimensionValidator, BookSizeClass, BOOK_SIZE_CLASSES
from shelfspace.vision.book_extractor import BookExtractor
from shelfspace.vision.external_detector import ExternalDetector, ExternalDetection, HttpDetectorClient
from shelfspace.vision.pipeline import DetectionPipeline, PipelineResult

__all__ = [
    "PixelBuffer",
    "Detection",
    "volume_efficiency",
    "SOURCE_LOCAL",
    "SOURCE_EXTERNAL",
    "ShelfSegmenter",
    "ShelfBand",
    "EdgeExtractor",
    "EdgeCandidate",
    "EdgePass",
    "extract_with_retry",
    "EdgeFilter",
    "DimensionValidator",
    "BookSizeClass",
    "BOOK_SIZE_CLASSES",
    "BookExtractor",
    "ExternalDetector",
    "ExternalDetection",
    "HttpDetectorClient",
    "DetectionPipeline",
    "PipelineResult",
]
