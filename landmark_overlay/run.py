import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from .config import OverlayConfig, load_config
from .errors import CaptureOpenError, DetectorCreateError
from .pipeline import AnnotationPipeline

EXIT_CAPTURE_FAILED = -1
EXIT_DETECTOR_FAILED = 1


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Overlay face and pose landmarks on a camera feed or video file",
        epilog="Example: python -m landmark_overlay clip.mp4 --pose-style skeleton",
    )
    ap.add_argument("source", nargs="?", help="Video file or capture path (default: camera 0)")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--camera", type=int, help="Camera device index")
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--fps", type=int)
    ap.add_argument("--face-model")
    ap.add_argument("--pose-model")
    ap.add_argument("--no-face", action="store_true")
    ap.add_argument("--no-pose", action="store_true")
    ap.add_argument("--no-display", action="store_true")
    ap.add_argument("--no-fps", action="store_true")
    ap.add_argument("--debug", action="store_true", help="Log blendshapes and pose world landmarks")
    ap.add_argument("--mirror", action="store_true")
    ap.add_argument("--no-mirror", action="store_true")
    ap.add_argument("--pose-style", choices=["fan", "skeleton"])
    ap.add_argument("--end-of-stream", choices=["exit", "freeze", "loop"])
    ap.add_argument("--on-error", choices=["abort", "skip"])
    ap.add_argument("--gpu", action="store_true", help="Use the GPU delegate for both detectors")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--log-file")
    ap.add_argument("-v", "--verbose", action="store_true")

    return ap


def _apply_args(cfg: OverlayConfig, args: argparse.Namespace) -> OverlayConfig:
    source = None
    if args.source is not None:
        source = args.source
    elif args.camera is not None:
        source = args.camera

    mirror = None
    if args.mirror:
        mirror = True
    if args.no_mirror:
        mirror = False

    cfg.apply_overrides(
        source=source,
        width=args.width,
        height=args.height,
        fps=args.fps,
        enable_face=False if args.no_face else None,
        enable_pose=False if args.no_pose else None,
        enable_display=False if args.no_display else None,
        enable_fps_output=False if args.no_fps else None,
        enable_debug_output=True if args.debug else None,
        mirror=mirror,
        pose_style=args.pose_style,
        end_of_stream=args.end_of_stream,
        on_error=args.on_error,
        max_frames=args.max_frames,
        dry_run=True if args.dry_run else None,
        log_path=args.log_file,
    )
    if args.face_model:
        cfg.face.model_path = args.face_model
    if args.pose_model:
        cfg.pose.model_path = args.pose_model
    if args.gpu:
        cfg.face.use_gpu = True
        cfg.pose.use_gpu = True
    return cfg.validate()


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else OverlayConfig()
    cfg = _apply_args(cfg, args)

    pipeline = AnnotationPipeline(cfg)
    if args.verbose:
        pipeline.logger.setLevel(logging.DEBUG)

    def _handle_signal(_sig, _frame):
        pipeline.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    try:
        summary = pipeline.run()
    except CaptureOpenError as exc:
        print(f"fail to open video capture: {exc}", file=sys.stderr)
        return EXIT_CAPTURE_FAILED
    except DetectorCreateError as exc:
        print(f"fail to create landmark detector: {exc}", file=sys.stderr)
        return EXIT_DETECTOR_FAILED

    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
