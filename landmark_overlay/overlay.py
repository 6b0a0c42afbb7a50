from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from .types import CanonicalFrame, Landmark, LandmarkResult

# RGB order: the working buffer is the canonical detector input.
FACE_COLOR = (0, 255, 0)
POSE_COLOR = (255, 0, 0)
FACE_RADIUS = 1
POSE_THICKNESS = 1
DEFAULT_THRESHOLD = 0.5

# BlazePose 33-landmark topology
POSE_CONNECTIONS = (
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8), (9, 10),
    (11, 12), (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (11, 23), (12, 24), (23, 24), (23, 25), (24, 26), (25, 27), (26, 28),
    (27, 29), (28, 30), (29, 31), (30, 32), (27, 31), (28, 32),
)


def is_usable(lm: Landmark, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """A missing score passes; a present score must be strictly above threshold."""
    if lm.visibility is not None and not lm.visibility > threshold:
        return False
    if lm.presence is not None and not lm.presence > threshold:
        return False
    return True


def to_pixel(lm: Landmark, width: int, height: int) -> tuple[int, int]:
    return int(lm.x * width), int(lm.y * height)


def _first_subject(result: Optional[LandmarkResult]) -> Sequence[Landmark]:
    if result is None or result.subject_count < 1:
        return ()
    return result.landmarks[0]


def draw_face(image: np.ndarray, result: Optional[LandmarkResult], threshold: float = DEFAULT_THRESHOLD) -> int:
    """Draw one dot per usable face landmark. Returns the number drawn."""
    h, w = image.shape[:2]
    drawn = 0
    for lm in _first_subject(result):
        if not is_usable(lm, threshold):
            continue
        cv2.circle(image, to_pixel(lm, w, h), FACE_RADIUS, FACE_COLOR, -1)
        drawn += 1
    return drawn


def draw_pose(
    image: np.ndarray,
    result: Optional[LandmarkResult],
    style: str = "fan",
    threshold: float = DEFAULT_THRESHOLD,
) -> int:
    """Draw pose connections. Returns the number of lines drawn.

    ``fan`` joins landmark 0 to every later usable landmark and draws nothing when
    landmark 0 itself is unusable. ``skeleton`` draws ``POSE_CONNECTIONS``.
    """
    points = _first_subject(result)
    if not points:
        return 0
    h, w = image.shape[:2]

    if style == "skeleton":
        edges = [
            (a, b) for a, b in POSE_CONNECTIONS
            if a < len(points) and b < len(points)
            and is_usable(points[a], threshold) and is_usable(points[b], threshold)
        ]
    elif style == "fan":
        if not is_usable(points[0], threshold):
            return 0
        edges = [(0, i) for i in range(1, len(points)) if is_usable(points[i], threshold)]
    else:
        raise ValueError(f"unknown pose style: {style!r}")

    for a, b in edges:
        cv2.line(image, to_pixel(points[a], w, h), to_pixel(points[b], w, h), POSE_COLOR, POSE_THICKNESS)
    return len(edges)


def render_overlay(
    frame: CanonicalFrame,
    face: Optional[LandmarkResult],
    pose: Optional[LandmarkResult],
    mirror: bool = False,
    pose_style: str = "fan",
    threshold: float = DEFAULT_THRESHOLD,
) -> np.ndarray:
    """Draw onto the RGB working buffer in place and return a separate BGR image."""
    image = frame.pixels
    draw_face(image, face, threshold)
    draw_pose(image, pose, pose_style, threshold)
    if mirror:
        image = cv2.flip(image, 1)
    return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
