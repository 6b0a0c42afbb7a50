import cv2
import numpy as np
import pytest

from landmark_overlay.adapter import aligned_image, wrap_canonical
from landmark_overlay.overlay import (
    POSE_CONNECTIONS,
    draw_face,
    draw_pose,
    is_usable,
    render_overlay,
    to_pixel,
)
from landmark_overlay.types import Landmark, LandmarkResult


@pytest.mark.parametrize(
    "visibility, presence, expected",
    [
        (0.4, None, False),
        (None, 0.9, True),
        (None, None, True),
        (0.5, None, False),
        (0.51, 0.99, True),
        (0.9, 0.2, False),
    ],
)
def test_visibility_presence_gate(visibility, presence, expected):
    lm = Landmark(0.5, 0.5, visibility=visibility, presence=presence)
    assert is_usable(lm) is expected


def test_to_pixel_truncates():
    assert to_pixel(Landmark(0.5, 0.5), 4, 4) == (2, 2)
    assert to_pixel(Landmark(0.99, 0.26), 10, 10) == (9, 2)


def test_draw_face_marks_usable_landmarks_only():
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    result = LandmarkResult(
        landmarks=[[Landmark(0.5, 0.5), Landmark(0.0, 0.0, visibility=0.4)]]
    )

    assert draw_face(image, result) == 1
    assert image[2, 2].tolist() == [0, 255, 0]
    assert image[0, 0].tolist() == [0, 0, 0]


def test_draw_face_without_subjects_draws_nothing():
    image = np.zeros((4, 4, 3), dtype=np.uint8)
    assert draw_face(image, LandmarkResult()) == 0
    assert draw_face(image, None) == 0
    assert not image.any()


def _pose(points):
    return LandmarkResult(landmarks=[points])


def test_pose_fan_connects_anchor_to_later_usable_points():
    image = np.zeros((20, 20, 3), dtype=np.uint8)
    result = _pose(
        [
            Landmark(0.1, 0.5),
            Landmark(0.9, 0.5),
            Landmark(0.5, 0.9, presence=0.1),
            Landmark(0.5, 0.1, visibility=0.8),
        ]
    )

    assert draw_pose(image, result) == 2
    assert image[10, 5].tolist() == [255, 0, 0]  # anchor -> (18, 10)
    assert image[15, 7].tolist() == [0, 0, 0]  # no line towards the unusable point


def test_pose_fan_needs_usable_anchor():
    image = np.zeros((20, 20, 3), dtype=np.uint8)
    result = _pose([Landmark(0.1, 0.5, visibility=0.2), Landmark(0.9, 0.5), Landmark(0.5, 0.9)])

    assert draw_pose(image, result) == 0
    assert not image.any()


def test_pose_skeleton_draws_edge_table():
    image = np.zeros((64, 64, 3), dtype=np.uint8)
    points = [Landmark(0.1 + 0.02 * i, 0.1 + 0.025 * i) for i in range(33)]
    assert draw_pose(image, _pose(points), style="skeleton") == len(POSE_CONNECTIONS)

    points[11] = Landmark(0.5, 0.5, visibility=0.1)
    degree = sum(1 for a, b in POSE_CONNECTIONS if 11 in (a, b))
    assert draw_pose(image, _pose(points), style="skeleton") == len(POSE_CONNECTIONS) - degree


def test_pose_unknown_style_raises():
    with pytest.raises(ValueError):
        draw_pose(np.zeros((4, 4, 3), dtype=np.uint8), _pose([Landmark(0.1, 0.1)]), style="star")


def _asymmetric_frame():
    pixels = aligned_image(3, 5)
    pixels[:] = 0
    pixels[:, 0] = (255, 0, 0)  # red, left column
    pixels[0, 1] = (0, 0, 255)
    return wrap_canonical(pixels)


def test_render_mirror_matches_flip_then_convert():
    frame = _asymmetric_frame()
    expected = cv2.cvtColor(cv2.flip(frame.pixels, 1), cv2.COLOR_RGB2BGR)

    out = render_overlay(frame, None, None, mirror=True)

    assert np.array_equal(out, expected)
    assert out[:, 4].tolist() == [[0, 0, 255]] * 3
    assert out[0, 3].tolist() == [255, 0, 0]


def test_render_without_mirror_keeps_orientation():
    frame = _asymmetric_frame()

    out = render_overlay(frame, None, None, mirror=False)

    assert out[:, 0].tolist() == [[0, 0, 255]] * 3
    assert out[:, 4].tolist() == [[0, 0, 0]] * 3
    assert not np.shares_memory(out, frame.pixels)


def test_render_draws_on_working_buffer_before_flip():
    pixels = aligned_image(4, 4)
    pixels[:] = 0
    frame = wrap_canonical(pixels)
    face = LandmarkResult(landmarks=[[Landmark(0.0, 0.0)]])

    out = render_overlay(frame, face, None, mirror=True)

    assert frame.pixels[0, 0].tolist() == [0, 255, 0]
    assert out[0, 3].tolist() == [0, 255, 0]
