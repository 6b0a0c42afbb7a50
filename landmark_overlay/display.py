from __future__ import annotations

import time
from abc import ABC, abstractmethod

import cv2
import numpy as np

NO_KEY = -1


def is_exit_key(key: int) -> bool:
    # some highgui backends report 255 when no key was pressed
    return key >= 0 and key != 255


class DisplaySink(ABC):
    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def show(self, image: np.ndarray) -> None: ...

    @abstractmethod
    def poll_key(self, timeout_ms: int) -> int: ...

    @abstractmethod
    def close(self) -> None: ...


class WindowDisplay(DisplaySink):
    def __init__(self, title: str):
        self.title = title
        self._open = False

    def open(self) -> None:
        cv2.namedWindow(self.title, cv2.WINDOW_AUTOSIZE)
        self._open = True

    def show(self, image: np.ndarray) -> None:
        cv2.imshow(self.title, image)

    def poll_key(self, timeout_ms: int) -> int:
        return cv2.waitKey(timeout_ms)

    def close(self) -> None:
        if self._open:
            cv2.destroyAllWindows()
            self._open = False


class NullDisplay(DisplaySink):
    """Headless sink: nothing is shown and no key is ever pressed."""

    def open(self) -> None:
        return None

    def show(self, image: np.ndarray) -> None:
        return None

    def poll_key(self, timeout_ms: int) -> int:
        time.sleep(timeout_ms / 1000.0)
        return NO_KEY

    def close(self) -> None:
        return None
