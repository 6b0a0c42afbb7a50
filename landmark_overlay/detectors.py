"""Landmark detector facade over the MediaPipe Tasks vision API.

Each detector owns one long-lived landmarker running in VIDEO mode. Calls are
synchronous and keyed on a strictly increasing millisecond timestamp.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

from .config import DetectorOptions
from .errors import DetectionError, DetectorCreateError, TimestampOrderError
from .types import CanonicalFrame, Category, Landmark, LandmarkResult


class LandmarkDetector(ABC):
    """Stateful tracker: one instance per detector type per session."""

    name = "detector"

    def __init__(self) -> None:
        self._last_timestamp_ms: Optional[int] = None
        self._closed = False

    @property
    def last_timestamp_ms(self) -> Optional[int]:
        return self._last_timestamp_ms

    def detect(self, frame: CanonicalFrame, timestamp_ms: int) -> LandmarkResult:
        if self._closed:
            raise DetectionError(self.name, "detector is closed")
        if self._last_timestamp_ms is not None and timestamp_ms <= self._last_timestamp_ms:
            raise TimestampOrderError(
                self.name,
                f"timestamp {timestamp_ms} ms is not after {self._last_timestamp_ms} ms",
            )
        self._last_timestamp_ms = timestamp_ms
        return self._detect(frame, timestamp_ms)

    @abstractmethod
    def _detect(self, frame: CanonicalFrame, timestamp_ms: int) -> LandmarkResult: ...

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    def _release(self) -> None:
        return None


def _optional_score(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def landmarks_from_mediapipe(points: Iterable[Any]) -> list[Landmark]:
    """Convert Tasks API (Normalized)Landmark objects; missing scores stay None."""
    out = []
    for p in points:
        out.append(
            Landmark(
                x=float(p.x),
                y=float(p.y),
                z=float(getattr(p, "z", 0.0) or 0.0),
                visibility=_optional_score(getattr(p, "visibility", None)),
                presence=_optional_score(getattr(p, "presence", None)),
            )
        )
    return out


def categories_from_mediapipe(categories: Iterable[Any]) -> list[Category]:
    return [Category(str(c.category_name), float(c.score)) for c in categories]


def face_result_from_mediapipe(res: Any) -> LandmarkResult:
    return LandmarkResult(
        landmarks=[landmarks_from_mediapipe(s) for s in (res.face_landmarks or [])],
        blendshapes=[categories_from_mediapipe(s) for s in (getattr(res, "face_blendshapes", None) or [])],
        transformation_matrixes=list(getattr(res, "facial_transformation_matrixes", None) or []),
    )


def pose_result_from_mediapipe(res: Any) -> LandmarkResult:
    return LandmarkResult(
        landmarks=[landmarks_from_mediapipe(s) for s in (res.pose_landmarks or [])],
        world_landmarks=[
            landmarks_from_mediapipe(s) for s in (getattr(res, "pose_world_landmarks", None) or [])
        ],
    )


def _import_mediapipe():
    try:
        import mediapipe as mp  # type: ignore
        from mediapipe.tasks import python as mp_python  # type: ignore
        from mediapipe.tasks.python import vision as mp_vision  # type: ignore
    except Exception as e:
        raise DetectorCreateError(
            "MediaPipe is not installed. Install with: pip install mediapipe"
        ) from e
    return mp, mp_python, mp_vision


def _read_model(name: str, path: str) -> bytes:
    p = Path(path)
    if not p.is_file():
        raise DetectorCreateError(f"{name}: model asset not found: {p}")
    data = p.read_bytes()
    if not data:
        raise DetectorCreateError(f"{name}: model asset is empty: {p}")
    return data


class _MediaPipeDetector(LandmarkDetector):
    def __init__(self, options: DetectorOptions):
        super().__init__()
        self.options = options
        self._mp, mp_python, self._vision = _import_mediapipe()
        base_kwargs: dict[str, Any] = {"model_asset_buffer": _read_model(self.name, options.model_path)}
        if options.use_gpu:
            base_kwargs["delegate"] = mp_python.BaseOptions.Delegate.GPU
        try:
            self._landmarker = self._create(mp_python.BaseOptions(**base_kwargs))
        except Exception as e:
            raise DetectorCreateError(f"{self.name}: {e}") from e

    @abstractmethod
    def _create(self, base_options: Any) -> Any: ...

    @abstractmethod
    def _convert(self, res: Any) -> LandmarkResult: ...

    def _detect(self, frame: CanonicalFrame, timestamp_ms: int) -> LandmarkResult:
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=frame.pixels)
        try:
            res = self._landmarker.detect_for_video(image, int(timestamp_ms))
        except Exception as e:
            raise DetectionError(self.name, str(e)) from e
        return self._convert(res)

    def _release(self) -> None:
        self._landmarker.close()


class MediaPipeFaceDetector(_MediaPipeDetector):
    name = "face"

    def _create(self, base_options: Any) -> Any:
        options = self._vision.FaceLandmarkerOptions(
            base_options=base_options,
            running_mode=self._vision.RunningMode.VIDEO,
            num_faces=self.options.max_subjects,
            output_face_blendshapes=self.options.output_blendshapes,
            output_facial_transformation_matrixes=self.options.output_transformation_matrixes,
        )
        return self._vision.FaceLandmarker.create_from_options(options)

    def _convert(self, res: Any) -> LandmarkResult:
        return face_result_from_mediapipe(res)


class MediaPipePoseDetector(_MediaPipeDetector):
    name = "pose"

    def _create(self, base_options: Any) -> Any:
        options = self._vision.PoseLandmarkerOptions(
            base_options=base_options,
            running_mode=self._vision.RunningMode.VIDEO,
            num_poses=self.options.max_subjects,
            output_segmentation_masks=self.options.output_segmentation_masks,
        )
        return self._vision.PoseLandmarker.create_from_options(options)

    def _convert(self, res: Any) -> LandmarkResult:
        return pose_result_from_mediapipe(res)
