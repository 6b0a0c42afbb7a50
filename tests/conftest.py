import logging

import numpy as np
import pytest

from landmark_overlay.detectors import LandmarkDetector
from landmark_overlay.display import NO_KEY, DisplaySink
from landmark_overlay.frame_source import FrameSource
from landmark_overlay.types import Frame, LandmarkResult


class FakeSource(FrameSource):
    def __init__(self, images, is_camera=False, calls=None):
        """Queue images; a None entry stands for a failed read."""
        self.images = list(images)
        self._initial = list(images)
        self.is_camera = is_camera
        self.calls = calls if calls is not None else []
        self.idx = 0
        self.started = False

    def start(self):
        self.started = True

    def read(self):
        if not self.images:
            return None
        img = self.images.pop(0)
        if img is None:
            return None
        self.idx += 1
        return Frame(self.idx, img)

    @property
    def exhausted(self):
        return not self.is_camera and not self.images

    def rewind(self):
        self.images = list(self._initial)
        return True

    def stop(self):
        self.calls.append("capture")


class StubDetector(LandmarkDetector):
    def __init__(self, name, results=None, calls=None, fail_on=()):
        """Return canned results in order; raise on the call numbers in ``fail_on``."""
        super().__init__()
        self.name = name
        self.results = list(results or [])
        self.calls = calls if calls is not None else []
        self.fail_on = set(fail_on)
        self.timestamps = []
        self.frames = []

    def _detect(self, frame, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        self.frames.append(frame)
        if len(self.timestamps) in self.fail_on:
            from landmark_overlay.errors import DetectionError

            raise DetectionError(self.name, "inference failed")
        if self.results:
            return self.results.pop(0)
        return LandmarkResult()

    def _release(self):
        self.calls.append(self.name)


class RecordingDisplay(DisplaySink):
    def __init__(self, keys=(), calls=None):
        """Return ``keys`` from successive polls, then the no-key sentinel."""
        self.keys = list(keys)
        self.calls = calls if calls is not None else []
        self.shown = []
        self.opened = False

    def open(self):
        self.opened = True

    def show(self, image):
        self.shown.append(image)

    def poll_key(self, timeout_ms):
        if self.keys:
            return self.keys.pop(0)
        return NO_KEY

    def close(self):
        self.calls.append("display")


@pytest.fixture
def quiet_logger():
    logger = logging.getLogger("landmark_overlay.test")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    logger.setLevel(logging.INFO)
    return logger


@pytest.fixture
def black_frame():
    def _make(height=4, width=4):
        return np.zeros((height, width, 3), dtype=np.uint8)

    return _make
