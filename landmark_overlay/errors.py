"""Typed failures raised by the annotation pipeline."""

from __future__ import annotations


class OverlayError(RuntimeError):
    """Base class for every pipeline failure."""


class CaptureOpenError(OverlayError):
    pass


class FrameLayoutError(OverlayError):
    """A frame buffer does not match the canonical RGB layout."""


class DetectorCreateError(OverlayError):
    pass


class DetectionError(OverlayError):
    def __init__(self, detector: str, message: str):
        super().__init__(f"{detector}: {message}")
        self.detector = detector


class TimestampOrderError(DetectionError):
    """A detector running in video mode received a non-increasing timestamp."""
