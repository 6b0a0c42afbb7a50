"""Real-time face and pose landmark overlay for camera feeds and video files."""

from .config import DetectorOptions, OverlayConfig
from .pipeline import AnnotationPipeline, SessionSummary

__all__ = ["AnnotationPipeline", "DetectorOptions", "OverlayConfig", "SessionSummary"]
