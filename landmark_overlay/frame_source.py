"""Frame source abstraction for capture input.

- Camera devices and video files through cv2.VideoCapture
- Synthetic test frames for dry runs
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from .errors import CaptureOpenError
from .types import Frame


class FrameSource(ABC):
    """Abstract base class for frame sources."""

    is_camera: bool = False

    @abstractmethod
    def start(self) -> None:
        """Open the source. Raises CaptureOpenError when it cannot be opened."""
        ...

    @abstractmethod
    def read(self) -> Frame | None:
        """Read the next BGR frame, or None when no frame is available."""
        ...

    @abstractmethod
    def stop(self) -> None:
        """Release the source."""
        ...

    @property
    def exhausted(self) -> bool:
        """True once a finite source has run out of frames."""
        return False

    @property
    def backend_name(self) -> str:
        return type(self).__name__

    def rewind(self) -> bool:
        """Restart a finite source from its first frame. Returns False if unsupported."""
        return False


class VideoCaptureSource(FrameSource):
    """Camera device (int target) or file/backend path (str target)."""

    def __init__(self, target: int | str, width: int = 1280, height: int = 720, fps: int = 60):
        self.target = target
        self.is_camera = isinstance(target, int)
        self.width = width
        self.height = height
        self.fps = fps
        self.cap: Any = None
        self.frame_id = 0
        self._exhausted = False

    def start(self) -> None:
        self.cap = cv2.VideoCapture(self.target, cv2.CAP_ANY)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise CaptureOpenError(f"Failed to open video capture: {self.target}")

        if self.is_camera:
            # Too high a resolution may reduce FPS
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        self.frame_id = 0
        self._exhausted = False

    def read(self) -> Frame | None:
        if self.cap is None:
            return None

        ok, img = self.cap.read()
        if not ok or img is None or img.size == 0:
            if not self.is_camera:
                self._exhausted = True
            return None

        self.frame_id += 1
        return Frame(self.frame_id, img)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def backend_name(self) -> str:
        if self.cap is None:
            return "unopened"
        return str(self.cap.getBackendName())

    def rewind(self) -> bool:
        if self.cap is None or self.is_camera:
            return False
        if not self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
            return False
        self._exhausted = False
        return True

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticSource(FrameSource):
    """Moving gradient frames paced at ``fps``; finite when ``max_frames`` is set."""

    def __init__(self, fps: int, width: int, height: int, max_frames: Optional[int] = None, is_camera: bool = False):
        self.fps = fps
        self.width = width
        self.height = height
        self.max_frames = max_frames
        self.is_camera = is_camera
        self.frame_id = 0
        self._last = 0.0

    def start(self) -> None:
        self._last = time.time()
        self.frame_id = 0

    def read(self) -> Frame | None:
        if self.exhausted:
            return None
        now = time.time()
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (now - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.frame_id += 1

        img = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        ramp = (np.arange(self.width, dtype=np.int64) + self.frame_id * 4) % 256
        img[:, :, 0] = ramp.astype(np.uint8)
        return Frame(self.frame_id, img)

    @property
    def exhausted(self) -> bool:
        return self.max_frames is not None and self.frame_id >= self.max_frames

    def rewind(self) -> bool:
        self.frame_id = 0
        return True

    def stop(self) -> None:
        return None
