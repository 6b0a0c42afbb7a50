"""Frame adapter: captured BGR frames -> canonical RGB detector input.

The detectors read an SRGB image frame: 3 x uint8 channels per pixel, rows
padded to a 16-byte boundary and a 16-byte aligned base address. Buffers are
verified against that layout and never repacked; the BGR -> RGB conversion
writes straight into a buffer allocated with the right layout.
"""

from __future__ import annotations

import numpy as np

from .errors import FrameLayoutError
from .types import CanonicalFrame

CHANNELS = 3
BYTES_PER_CHANNEL = 1
ALIGNMENT = 16


def row_stride(
    width: int,
    channels: int = CHANNELS,
    bytes_per_channel: int = BYTES_PER_CHANNEL,
    alignment: int = ALIGNMENT,
) -> int:
    """Bytes per row, rounded up to a multiple of ``alignment`` (a power of two)."""
    if width <= 0:
        raise FrameLayoutError(f"width must be positive, got {width}")
    return (((width * channels * bytes_per_channel) - 1) | (alignment - 1)) + 1


def aligned_image(height: int, width: int) -> np.ndarray:
    """Allocate an uninitialised (height, width, 3) uint8 view in canonical layout."""
    if height <= 0:
        raise FrameLayoutError(f"height must be positive, got {height}")
    stride = row_stride(width)
    raw = np.empty(height * stride + ALIGNMENT, dtype=np.uint8)
    offset = (-raw.ctypes.data) % ALIGNMENT
    return np.ndarray(
        shape=(height, width, CHANNELS),
        dtype=np.uint8,
        buffer=raw,
        offset=offset,
        strides=(stride, CHANNELS * BYTES_PER_CHANNEL, BYTES_PER_CHANNEL),
    )


def _check_pixel_type(image, what: str) -> None:
    if not isinstance(image, np.ndarray):
        raise FrameLayoutError(f"{what} must be a numpy array, got {type(image).__name__}")
    if image.dtype != np.uint8:
        raise FrameLayoutError(f"{what} must be uint8, got {image.dtype}")
    if image.ndim != 3 or image.shape[2] != CHANNELS:
        raise FrameLayoutError(f"{what} must be HxWx{CHANNELS}, got shape {image.shape}")
    if image.shape[0] == 0 or image.shape[1] == 0:
        raise FrameLayoutError(f"{what} is empty")


def validate_layout(pixels: np.ndarray) -> int:
    """Check ``pixels`` against the canonical layout and return its row stride."""
    _check_pixel_type(pixels, "canonical frame")
    height, width = pixels.shape[:2]
    expected = row_stride(width)
    if pixels.strides[1:] != (CHANNELS * BYTES_PER_CHANNEL, BYTES_PER_CHANNEL):
        raise FrameLayoutError(f"pixels are not packed within a row: strides {pixels.strides}")
    if pixels.strides[0] != expected:
        raise FrameLayoutError(
            f"row stride {pixels.strides[0]} does not match aligned stride {expected} "
            f"for width {width}"
        )
    if pixels.ctypes.data % ALIGNMENT != 0:
        raise FrameLayoutError(f"buffer address is not {ALIGNMENT}-byte aligned")
    return expected


def wrap_canonical(pixels: np.ndarray) -> CanonicalFrame:
    """Wrap an RGB buffer that already has the canonical layout. No copy is made."""
    stride = validate_layout(pixels)
    height, width = pixels.shape[:2]
    return CanonicalFrame(pixels=pixels, width=width, height=height, stride=stride)


def adapt_frame(bgr: np.ndarray) -> CanonicalFrame:
    _check_pixel_type(bgr, "captured frame")
    height, width = bgr.shape[:2]
    pixels = aligned_image(height, width)
    np.copyto(pixels, bgr[:, :, ::-1])
    return wrap_canonical(pixels)
