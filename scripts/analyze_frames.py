import argparse
import json
import os
import sys

import cv2
from loguru import logger

# Add project root to python path to allow imports
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from shelfspace.config import DetectionConfig, SENSITIVITY_PROFILES, ShelfSpaceConfig
from shelfspace.exceptions import ShelfSpaceException
from shelfspace.logging_config import configure_logging
from shelfspace.service import FrameAnalysis, ShelfSpaceService
from shelfspace.vision.pixel_buffer import PixelBuffer


def annotate(image, analysis: FrameAnalysis):
    """Draw detections and suggestion anchors onto a copy of the frame."""
    annotated = image.copy()
    for d in analysis.detections:
        color = (0, 200, 0) if d.stable else (0, 200, 255)
        x1, y1 = int(d.x), int(d.y)
        x2, y2 = int(d.x + d.width), int(d.y + d.height)
        cv2.rectangle(annotated, (x1, y1), (x2, y2), color, 2)
        cv2.putText(annotated, f"{d.confidence:.2f}", (x1, max(0, y1 - 4)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, color, 1)

    for s in analysis.suggestions:
        cv2.circle(annotated, (int(s.anchor_x), int(s.anchor_y)), 6, (255, 0, 255), -1)
        cv2.putText(annotated, s.kind.value, (int(s.anchor_x) + 8, int(s.anchor_y)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.4, (255, 0, 255), 1)
    return annotated


def analyze_frames(image_paths, profile="balanced", output_dir=None):
    """
    Feed images through one service as successive frames of a stream.
    """
    config = ShelfSpaceConfig(detection=DetectionConfig.for_profile(profile))
    service = ShelfSpaceService(config)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    for index, image_path in enumerate(image_paths):
        image = cv2.imread(image_path)
        if image is None:
            logger.error(f"Could not read image: {image_path}")
            continue

        try:
            analysis = service.process_frame(PixelBuffer.from_bgr(image))
        except ShelfSpaceException as e:
            logger.error(f"{image_path}: {e.message} ({e.detail})")
            continue

        result = analysis.to_dict()
        result["frame"] = image_path
        print(json.dumps(result, indent=2))

        if output_dir:
            name = f"{index:04d}_{os.path.basename(image_path)}"
            output_path = os.path.join(output_dir, name)
            cv2.imwrite(output_path, annotate(image, analysis))
            logger.info(f"Saved annotated frame to: {output_path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Analyze bookshelf images as successive frames")
    parser.add_argument("images", nargs="+", help="Paths to the input images, in frame order")
    parser.add_argument("--profile", default="balanced", choices=sorted(SENSITIVITY_PROFILES),
                        help="Detection sensitivity profile")
    parser.add_argument("--output-dir", default=None, help="Directory for annotated frames")
    parser.add_argument("--log-level", default="INFO", help="Log level")

    args = parser.parse_args()

    configure_logging(args.log_level)
    analyze_frames(args.images, args.profile, args.output_dir)
