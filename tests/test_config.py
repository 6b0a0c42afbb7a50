import json
from pathlib import Path

import pytest

from landmark_overlay.config import OverlayConfig, load_config


def test_load_config_json(tmp_path: Path):
    cfg_path = tmp_path / "overlay.json"
    cfg_path.write_text(
        json.dumps(
            {
                "source": "clips/walk.mp4",
                "enable_display": False,
                "pose_style": "skeleton",
                "end_of_stream": "loop",
                "max_frames": 10,
                "face": {"model_path": "m/face.task", "use_gpu": True},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(cfg_path)
    assert cfg.source == "clips/walk.mp4"
    assert not cfg.is_camera
    assert cfg.enable_display is False
    assert cfg.pose_style == "skeleton"
    assert cfg.end_of_stream == "loop"
    assert cfg.max_frames == 10
    assert cfg.face.model_path == "m/face.task"
    assert cfg.face.use_gpu is True
    assert cfg.face.output_blendshapes is True
    assert cfg.pose.model_path == "models/pose_landmarker_full.task"

    cfg.apply_overrides(source=2, max_frames=None)
    assert cfg.source == 2
    assert cfg.is_camera
    assert cfg.max_frames == 10


def test_load_config_yaml(tmp_path: Path):
    cfg_path = tmp_path / "overlay.yaml"
    cfg_path.write_text(
        "source: 1\nmirror: false\non_error: skip\npose:\n  max_subjects: 1\n",
        encoding="utf-8",
    )

    cfg = load_config(cfg_path)
    assert cfg.source == 1
    assert cfg.mirror is False
    assert cfg.on_error == "skip"


def test_load_config_rejects_unknown_policy(tmp_path: Path):
    cfg_path = tmp_path / "bad.json"
    cfg_path.write_text(json.dumps({"end_of_stream": "spin"}), encoding="utf-8")
    with pytest.raises(ValueError, match="end_of_stream"):
        load_config(cfg_path)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_config_defaults():
    cfg = OverlayConfig()
    assert cfg.source == 0
    assert cfg.is_camera
    assert cfg.visibility_threshold == 0.5
    assert cfg.pose_style == "fan"
    assert cfg.enable_debug_output is False
    assert cfg.face.max_subjects == 1
    assert cfg.face.output_transformation_matrixes is True
    assert cfg.pose.output_segmentation_masks is False
    assert cfg.as_dict()["face"]["model_path"] == "models/face_landmarker.task"


@pytest.mark.parametrize("max_frames", [0, -3])
def test_max_frames_must_be_positive(max_frames):
    with pytest.raises(ValueError, match="max_frames"):
        OverlayConfig(max_frames=max_frames).validate()
    assert OverlayConfig(max_frames=1).validate().max_frames == 1
