from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

END_OF_STREAM_POLICIES = ("exit", "freeze", "loop")
ERROR_POLICIES = ("abort", "skip")
POSE_STYLES = ("fan", "skeleton")


@dataclass
class DetectorOptions:
    """Creation-time options for one landmark detector."""

    model_path: str = ""
    max_subjects: int = 1
    output_blendshapes: bool = False  # face only
    output_transformation_matrixes: bool = False  # face only
    output_segmentation_masks: bool = False  # pose only
    use_gpu: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _default_face() -> DetectorOptions:
    return DetectorOptions(
        model_path="models/face_landmarker.task",
        output_blendshapes=True,
        output_transformation_matrixes=True,
    )


def _default_pose() -> DetectorOptions:
    return DetectorOptions(model_path="models/pose_landmarker_full.task")


@dataclass
class OverlayConfig:
    source: int | str = 0  # int -> camera device, str -> file or backend path
    width: int = 1280
    height: int = 720
    fps: int = 60
    window_name: str = "Press Any Key To Exit"
    key_poll_ms: int = 1
    enable_display: bool = True
    enable_fps_output: bool = True
    enable_debug_output: bool = False
    enable_face: bool = True
    enable_pose: bool = True
    mirror: Optional[bool] = None  # None: mirror camera sources only
    visibility_threshold: float = 0.5
    pose_style: str = "fan"
    end_of_stream: str = "exit"
    on_error: str = "abort"
    max_frames: Optional[int] = None
    dry_run: bool = False
    log_path: Optional[str] = None
    face: DetectorOptions = field(default_factory=_default_face)
    pose: DetectorOptions = field(default_factory=_default_pose)

    @property
    def is_camera(self) -> bool:
        return isinstance(self.source, int)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "OverlayConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self

    def validate(self) -> "OverlayConfig":
        if self.end_of_stream not in END_OF_STREAM_POLICIES:
            raise ValueError(
                f"end_of_stream must be one of {END_OF_STREAM_POLICIES}, got {self.end_of_stream!r}"
            )
        if self.on_error not in ERROR_POLICIES:
            raise ValueError(f"on_error must be one of {ERROR_POLICIES}, got {self.on_error!r}")
        if self.pose_style not in POSE_STYLES:
            raise ValueError(f"pose_style must be one of {POSE_STYLES}, got {self.pose_style!r}")
        if self.key_poll_ms < 1:
            raise ValueError("key_poll_ms must be >= 1")
        if self.max_frames is not None and self.max_frames < 1:
            raise ValueError(f"max_frames must be >= 1 or unset, got {self.max_frames!r}")
        return self


def _normalize_source(value: Any) -> int | str:
    if isinstance(value, bool):
        raise ValueError("source must be a device index or a path")
    if isinstance(value, (int, float)):
        return int(value)
    return str(value)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _load_detector(raw: Any, base: DetectorOptions) -> DetectorOptions:
    if raw is None:
        return base
    if not isinstance(raw, dict):
        raise ValueError("detector options must be a mapping")
    base.model_path = str(raw.get("model_path", base.model_path))
    base.max_subjects = int(raw.get("max_subjects", base.max_subjects))
    base.output_blendshapes = bool(raw.get("output_blendshapes", base.output_blendshapes))
    base.output_transformation_matrixes = bool(
        raw.get("output_transformation_matrixes", base.output_transformation_matrixes)
    )
    base.output_segmentation_masks = bool(
        raw.get("output_segmentation_masks", base.output_segmentation_masks)
    )
    base.use_gpu = bool(raw.get("use_gpu", base.use_gpu))
    return base


def load_config(path: str | Path) -> OverlayConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = OverlayConfig()
    cfg.source = _normalize_source(raw.get("source", cfg.source))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.window_name = str(raw.get("window_name", cfg.window_name))
    cfg.key_poll_ms = int(raw.get("key_poll_ms", cfg.key_poll_ms))
    cfg.enable_display = bool(raw.get("enable_display", cfg.enable_display))
    cfg.enable_fps_output = bool(raw.get("enable_fps_output", cfg.enable_fps_output))
    cfg.enable_debug_output = bool(raw.get("enable_debug_output", cfg.enable_debug_output))
    cfg.enable_face = bool(raw.get("enable_face", cfg.enable_face))
    cfg.enable_pose = bool(raw.get("enable_pose", cfg.enable_pose))
    mirror = raw.get("mirror", cfg.mirror)
    cfg.mirror = None if mirror is None else bool(mirror)
    cfg.visibility_threshold = float(raw.get("visibility_threshold", cfg.visibility_threshold))
    cfg.pose_style = str(raw.get("pose_style", cfg.pose_style))
    cfg.end_of_stream = str(raw.get("end_of_stream", cfg.end_of_stream))
    cfg.on_error = str(raw.get("on_error", cfg.on_error))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.log_path = raw.get("log_path", cfg.log_path)
    cfg.face = _load_detector(raw.get("face"), cfg.face)
    cfg.pose = _load_detector(raw.get("pose"), cfg.pose)

    return cfg.validate()
