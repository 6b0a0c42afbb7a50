from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import cv2
import numpy as np

from .adapter import adapt_frame
from .config import OverlayConfig
from .detectors import LandmarkDetector, MediaPipeFaceDetector, MediaPipePoseDetector
from .display import DisplaySink, NullDisplay, WindowDisplay, is_exit_key
from .errors import DetectionError, FrameLayoutError
from .frame_source import FrameSource, SyntheticSource, VideoCaptureSource
from .logging_utils import add_file_handler, setup_logger, source_label
from .overlay import is_usable, render_overlay
from .types import Frame, LandmarkResult

GPU_ENV_VAR = "TFLITE_FORCE_GPU"


class PipelineState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ADAPTING = "adapting"
    DETECTING = "detecting"
    RENDERING = "rendering"
    DISPLAYING = "displaying"
    SHUTDOWN = "shutdown"


@dataclass
class SessionSummary:
    frames_processed: int
    frames_skipped: int
    empty_reads: int
    avg_fps: float
    exit_reason: str


def tick_ms() -> int:
    return int((cv2.getTickCount() * 1000.0) / cv2.getTickFrequency())


class AnnotationPipeline:
    """Capture -> adapt -> detect (face, pose) -> render -> display, one frame at a time."""

    def __init__(
        self,
        config: OverlayConfig,
        logger=None,
        source: Optional[FrameSource] = None,
        face_detector: Optional[LandmarkDetector] = None,
        pose_detector: Optional[LandmarkDetector] = None,
        display: Optional[DisplaySink] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.config = config.validate()
        self.source_name = source_label(config.source)
        self.logger = logger or setup_logger(self.source_name)
        self.source = source
        self.face_detector = face_detector
        self.pose_detector = pose_detector
        self.display = display
        self.clock = clock or tick_ms
        self.state = PipelineState.IDLE
        self._stop_event = threading.Event()
        self._last_timestamp_ms: Optional[int] = None
        self._last_display: Optional[np.ndarray] = None
        self._skipped = 0

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def detection_enabled(self) -> bool:
        return not self.config.dry_run

    def _build_source(self) -> FrameSource:
        if self.source is not None:
            return self.source
        if self.config.dry_run:
            return SyntheticSource(
                self.config.fps,
                self.config.width,
                self.config.height,
                max_frames=self.config.max_frames,
                is_camera=self.config.is_camera,
            )
        return VideoCaptureSource(
            self.config.source,
            self.config.width,
            self.config.height,
            self.config.fps,
        )

    def _build_detectors(self) -> tuple[Optional[LandmarkDetector], Optional[LandmarkDetector]]:
        if not self.detection_enabled:
            return None, None
        face = None
        if self.config.enable_face:
            face = self.face_detector or MediaPipeFaceDetector(self.config.face)
        pose = None
        if self.config.enable_pose:
            try:
                pose = self.pose_detector or MediaPipePoseDetector(self.config.pose)
            except Exception:
                if face is not None:
                    face.close()
                raise
        return face, pose

    def _build_display(self) -> DisplaySink:
        if self.display is not None:
            return self.display
        if self.config.enable_display:
            return WindowDisplay(self.config.window_name)
        return NullDisplay()

    def _mirror(self, source: FrameSource) -> bool:
        if self.config.mirror is not None:
            return self.config.mirror
        return source.is_camera

    def _next_timestamp(self) -> int:
        ts = int(self.clock())
        if self._last_timestamp_ms is not None and ts <= self._last_timestamp_ms:
            ts = self._last_timestamp_ms + 1
        return ts

    def _on_frame_error(self, frame: Frame, exc: Exception) -> None:
        if self.config.on_error == "abort":
            raise exc
        self._skipped += 1
        self.logger.warning("frame=%d skipped: %s", frame.idx, exc)

    def _log_debug(self, face: Optional[LandmarkResult], pose: Optional[LandmarkResult]) -> None:
        if face is not None and face.blendshapes:
            for category in face.blendshapes[0]:
                self.logger.info("%s: %f", category.name, category.score)
        if pose is not None and pose.world_landmarks:
            for lm in pose.world_landmarks[0]:
                if is_usable(lm, self.config.visibility_threshold):
                    self.logger.info("x: %f y: %f z: %f", lm.x, lm.y, lm.z)

    def _process_frame(
        self,
        frame: Frame,
        source: FrameSource,
        face: Optional[LandmarkDetector],
        pose: Optional[LandmarkDetector],
    ) -> Optional[np.ndarray]:
        self.state = PipelineState.ADAPTING
        try:
            canonical = adapt_frame(frame.image)
        except FrameLayoutError as exc:
            self._on_frame_error(frame, exc)
            return None

        timestamp_ms = self._next_timestamp()
        if self.config.enable_fps_output and self._last_timestamp_ms is not None:
            fps = 1000.0 / float(timestamp_ms - self._last_timestamp_ms)
            self.logger.info("FPS: %.1f", fps)
        self._last_timestamp_ms = timestamp_ms

        self.state = PipelineState.DETECTING
        face_result = None
        pose_result = None
        try:
            if face is not None:
                face_result = face.detect(canonical, timestamp_ms)
            if pose is not None:
                pose_result = pose.detect(canonical, timestamp_ms)
        except DetectionError as exc:
            self._on_frame_error(frame, exc)
            return None

        self.state = PipelineState.RENDERING
        out = render_overlay(
            canonical,
            face_result,
            pose_result,
            mirror=self._mirror(source),
            pose_style=self.config.pose_style,
            threshold=self.config.visibility_threshold,
        )
        if self.config.enable_debug_output:
            self._log_debug(face_result, pose_result)
        return out

    def _loop(
        self,
        source: FrameSource,
        face: Optional[LandmarkDetector],
        pose: Optional[LandmarkDetector],
        display: DisplaySink,
    ) -> tuple[int, int, str]:
        frames = 0
        empty_reads = 0
        # reads since the last rewind; None until the first rewind
        reads_since_rewind: Optional[int] = None
        while True:
            if self._stop_event.is_set():
                return frames, empty_reads, "stopped"
            if self.config.max_frames is not None and frames >= self.config.max_frames:
                return frames, empty_reads, "max_frames"

            self.state = PipelineState.CAPTURING
            frame = source.read()
            if frame is None:
                empty_reads += 1
                if source.exhausted:
                    if self.config.end_of_stream == "exit":
                        self.logger.info("end of stream after %d frames", frames)
                        return frames, empty_reads, "end_of_stream"
                    if self.config.end_of_stream == "loop":
                        if reads_since_rewind == 0:
                            self.logger.warning("no frames read since rewind, exiting")
                            return frames, empty_reads, "end_of_stream"
                        if source.rewind():
                            self.logger.info("end of stream, rewinding")
                            reads_since_rewind = 0
            else:
                if reads_since_rewind is not None:
                    reads_since_rewind += 1
                shown = self._process_frame(frame, source, face, pose)
                if shown is not None:
                    self._last_display = shown
                    frames += 1

            self.state = PipelineState.DISPLAYING
            if self._last_display is not None:
                display.show(self._last_display)
            key = display.poll_key(self.config.key_poll_ms)
            if is_exit_key(key):
                self.logger.info("key %d pressed, exiting", key)
                return frames, empty_reads, "key_press"

    def run(self) -> SessionSummary:
        file_handler = None
        if self.config.log_path:
            file_handler = add_file_handler(self.logger, self.source_name, self.config.log_path)
        try:
            return self._run_session()
        finally:
            if file_handler is not None:
                self.logger.removeHandler(file_handler)
                file_handler.close()

    def _run_session(self) -> SessionSummary:
        source = self._build_source()
        source.start()
        self.logger.info("video capture backend name: %s", source.backend_name)
        self.logger.warning(
            "you may set the environment variable %s=1 to force GPU inference (currently %s)",
            GPU_ENV_VAR,
            os.environ.get(GPU_ENV_VAR, "unset"),
        )
        self.logger.info("config: %s", self.config.as_dict())

        t0 = time.time()
        frames = empty_reads = 0
        reason = "error"
        try:
            face, pose = self._build_detectors()
            try:
                display = self._build_display()
                display.open()
                try:
                    frames, empty_reads, reason = self._loop(source, face, pose, display)
                finally:
                    self.state = PipelineState.SHUTDOWN
                    display.close()
            finally:
                if face is not None:
                    face.close()
                if pose is not None:
                    pose.close()
        finally:
            self.state = PipelineState.SHUTDOWN
            source.stop()
            avg = frames / max(1e-6, (time.time() - t0))
            self.logger.info(
                "summary frames=%d skipped=%d empty_reads=%d avg_fps=%.2f exit=%s",
                frames, self._skipped, empty_reads, avg, reason,
            )

        return SessionSummary(frames, self._skipped, empty_reads, avg, reason)
