"""
Pixel Buffer

Read-only RGBA frame handed to the detection pipeline for one call.
"""

from dataclasses import dataclass, field
from typing import Union

import cv2
import numpy as np

from shelfspace.exceptions import InvalidBufferError


# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """
    An (height, width, 4) uint8 RGBA frame.

    The pipeline only reads from the buffer. The wrapped array is a
    non-writeable view, so the caller's own array is left untouched.
    """
    pixels: np.ndarray
    luminance: np.ndarray = field(init=False, repr=False, compare=False)
    rgb: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        pixels = self.pixels
        if pixels is None:
            raise InvalidBufferError("Pixel buffer is missing")
        if not isinstance(pixels, np.ndarray):
            raise InvalidBufferError(f"Unsupported buffer type: {type(pixels).__name__}")
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise InvalidBufferError(f"Expected (height, width, 4) RGBA array, got {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise InvalidBufferError(f"Zero-sized buffer: {pixels.shape[1]}x{pixels.shape[0]}")
        if pixels.dtype != np.uint8:
            raise InvalidBufferError(f"Expected uint8 samples, got {pixels.dtype}")

        view = pixels.view()
        view.flags.writeable = False
        object.__setattr__(self, "pixels", view)

        rgb = view[:, :, :3].astype(np.float32)
        rgb.flags.writeable = False
        luminance = rgb @ LUMA_WEIGHTS
        luminance.flags.writeable = False
        object.__setattr__(self, "rgb", rgb)
        object.__setattr__(self, "luminance", luminance)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def shape(self):
        return self.pixels.shape

    @classmethod
    def from_rgba(
        cls,
        data: Union[bytes, bytearray, memoryview, np.ndarray],
        width: int,
        height: int,
    ) -> "PixelBuffer":
        """
        Build a buffer from a flat RGBA byte sequence.

        Args:
            data: width * height * 4 bytes, row-major RGBA
            width: Frame width in pixels
            height: Frame height in pixels
        """
        if data is None:
            raise InvalidBufferError("Pixel data is missing")
        if width <= 0 or height <= 0:
            raise InvalidBufferError(f"Zero-sized buffer: {width}x{height}")

        if isinstance(data, np.ndarray):
            if data.dtype != np.uint8:
                raise InvalidBufferError(f"Expected uint8 samples, got {data.dtype}")
            flat = data.reshape(-1)
        else:
            flat = np.frombuffer(data, dtype=np.uint8)

        expected = width * height * 4
        if flat.size != expected:
            raise InvalidBufferError(
                f"Buffer holds {flat.size} bytes, expected {expected} for {width}x{height} RGBA"
            )

        return cls(flat.reshape(height, width, 4))

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> "PixelBuffer":
        """Build a buffer from an OpenCV image (BGR, BGRA or grayscale)."""
        if image is None or not isinstance(image, np.ndarray) or image.size == 0:
            raise InvalidBufferError("Image is empty or could not be decoded")

        if image.ndim == 2:
            rgba = cv2.cvtColor(image, cv2.COLOR_GRAY2RGBA)
        elif image.ndim == 3 and image.shape[2] == 3:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        elif image.ndim == 3 and image.shape[2] == 4:
            rgba = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        else:
            raise InvalidBufferError(f"Unsupported image shape: {image.shape}")

        return cls(rgba)

    def to_bgr(self) -> np.ndarray:
        """Return an OpenCV BGR copy of the frame."""
        return cv2.cvtColor(np.ascontiguousarray(self.pixels), cv2.COLOR_RGBA2BGR)
