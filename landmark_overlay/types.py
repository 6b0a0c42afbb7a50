from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Frame:
    idx: int
    image: Any  # BGR numpy array


@dataclass
class CanonicalFrame:
    """RGB, 3 x uint8 pixels with a 16-byte aligned row stride."""

    pixels: Any  # (height, width, 3) view over the aligned buffer
    width: int
    height: int
    stride: int


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None
    presence: Optional[float] = None


@dataclass(frozen=True)
class Category:
    name: str
    score: float


@dataclass
class LandmarkResult:
    landmarks: list[list[Landmark]] = field(default_factory=list)
    world_landmarks: list[list[Landmark]] = field(default_factory=list)
    blendshapes: list[list[Category]] = field(default_factory=list)
    transformation_matrixes: list[Any] = field(default_factory=list)

    @property
    def subject_count(self) -> int:
        return len(self.landmarks)
