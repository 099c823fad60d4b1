"""
Pytest configuration and fixtures for ShelfSpace tests.
"""

import asyncio
import base64
import sys
from pathlib import Path
from typing import AsyncGenerator, List

import numpy as np
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shelfspace.api.main import create_app
from shelfspace.api.dependencies import Settings
from shelfspace.exceptions import DetectorUnavailableError
from shelfspace.vision.detection import Detection
from shelfspace.vision.external_detector import ExternalDetection, ExternalDetector
from shelfspace.vision.pixel_buffer import PixelBuffer


BACKGROUND = (240, 240, 240)
DARK_SPINE = (40, 40, 40)
LIGHT_SPINE = (140, 140, 140)

# Five adjacent 40px spines, alternating dark and light, full frame height
SPINE_LEFT = 100
SPINE_WIDTH = 40
SPINE_COUNT = 5


# =============================================================================
# Test Settings
# =============================================================================

def get_test_settings() -> Settings:
    """Return settings configured for testing."""
    return Settings(
        environment="test",
        debug=True,
        detector_url=None,
        max_sessions=10,
    )


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return get_test_settings()


@pytest.fixture
def app(settings):
    """Create FastAPI application for testing."""
    return create_app(settings)


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# =============================================================================
# Image Fixtures
# =============================================================================

def make_striped_shelf(width: int = 640, height: int = 480) -> Image.Image:
    """
    Synthetic shelf without horizontal shelf lines.

    Spines occupy x in [100, 300): edges fall at 100, 140, ..., 300.
    """
    pixels = np.full((height, width, 3), BACKGROUND, dtype=np.uint8)
    for i in range(SPINE_COUNT):
        color = DARK_SPINE if i % 2 == 0 else LIGHT_SPINE
        left = SPINE_LEFT + i * SPINE_WIDTH
        pixels[:, left:left + SPINE_WIDTH] = color
    return Image.fromarray(pixels)


def to_buffer(image: Image.Image) -> PixelBuffer:
    return PixelBuffer(np.array(image.convert("RGBA")))


@pytest.fixture
def striped_shelf_image() -> Image.Image:
    return make_striped_shelf()


@pytest.fixture
def striped_buffer(striped_shelf_image) -> PixelBuffer:
    return to_buffer(striped_shelf_image)


@pytest.fixture
def blank_buffer() -> PixelBuffer:
    """Uniform frame: no shelf lines, no edges."""
    return PixelBuffer(np.full((480, 640, 4), 200, dtype=np.uint8))


@pytest.fixture
def low_contrast_buffer() -> PixelBuffer:
    """Spines only 20 luminance levels away from the background."""
    pixels = np.full((480, 640, 3), 240, dtype=np.uint8)
    pixels[:, 100:140] = 220
    pixels[:, 180:220] = 220
    return to_buffer(Image.fromarray(pixels))


@pytest.fixture
def shelf_board_buffer() -> PixelBuffer:
    """Two dark horizontal shelf boards at rows 156-163 and 356-363."""
    pixels = np.full((480, 640, 3), 240, dtype=np.uint8)
    pixels[156:164, :] = 60
    pixels[356:364, :] = 60
    return to_buffer(Image.fromarray(pixels))


@pytest.fixture
def striped_rgba_payload(striped_shelf_image) -> dict:
    """Raw frame request body for the striped shelf."""
    rgba = np.array(striped_shelf_image.convert("RGBA"))
    return {
        "width": rgba.shape[1],
        "height": rgba.shape[0],
        "data": base64.b64encode(rgba.tobytes()).decode("ascii"),
    }


# =============================================================================
# Detection Fixtures
# =============================================================================

def make_detection(
    id: str = "raw_0",
    x: float = 100,
    y: float = 50,
    width: float = 40,
    height: float = 150,
    confidence: float = 0.5,
) -> Detection:
    return Detection.from_geometry(
        id=id, x=x, y=y, width=width, height=height, confidence=confidence
    )


@pytest.fixture
def sample_detection() -> Detection:
    return make_detection()


# =============================================================================
# External Detector Fakes
# =============================================================================

class StaticDetector(ExternalDetector):
    """Returns a fixed list of boxes."""

    name = "static"

    def __init__(self, boxes: List[ExternalDetection]):
        self.boxes = boxes
        self.calls = 0

    async def detect(self, buffer):
        self.calls += 1
        return list(self.boxes)


class SlowDetector(ExternalDetector):
    """Never answers within any reasonable timeout."""

    name = "slow"

    async def detect(self, buffer):
        await asyncio.sleep(5)
        return []


class FailingDetector(ExternalDetector):
    """Fails every call."""

    name = "failing"

    async def detect(self, buffer):
        raise DetectorUnavailableError(self.name, detail="connection refused")


@pytest.fixture
def book_boxes() -> List[ExternalDetection]:
    return [
        ExternalDetection(x=100, y=50, width=40, height=150, confidence=0.8, label="book"),
        # Too wide and flat to be a spine
        ExternalDetection(x=0, y=0, width=200, height=50, confidence=0.9, label="book"),
        # Below the confidence gate
        ExternalDetection(x=300, y=50, width=30, height=150, confidence=0.2, label="book"),
    ]
