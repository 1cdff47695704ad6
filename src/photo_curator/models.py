"""Data models for photos, faces, people and detection runs."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

import numpy as np

from photo_curator.config import (
    DEFAULT_MIN_FACE_SIZE,
    DEFAULT_QUALITY,
    DEFAULT_SENSITIVITY,
    QUALITY_INPUT_SIZES,
    SENSITIVITY_RANGE,
)


class Quality(StrEnum):
    FAST = "fast"
    BALANCED = "balanced"
    ACCURATE = "accurate"


class FilterMode(StrEnum):
    """How a set of people is matched against the faces of a photo."""

    ANY = "any"  # at least one of the people
    ONLY = "only"  # no identified person outside the set


class ProgressPhase(StrEnum):
    LOADING_MODELS = "loading_models"
    DETECTING = "detecting"
    CLUSTERING = "clustering"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class Photo:
    """A photo known to the library."""

    id: int | None
    path: str
    filename: str
    capture_date: datetime | None
    week_number: int | None
    year: int | None
    subdirectory: str | None
    is_favorite: bool
    is_hidden: bool
    created_at: datetime | None


@dataclass
class BoundingBox:
    """Face box in source-image pixel space."""

    x: float
    y: float
    width: float
    height: float

    @property
    def size(self) -> float:
        """Larger of the two box dimensions."""
        return max(self.width, self.height)


@dataclass
class Face:
    """A single detected face within a photo."""

    id: int | None
    photo_id: int
    descriptor: np.ndarray  # shape (dim,)
    bounding_box: BoundingBox
    person_id: int | None
    confidence: float


@dataclass
class Person:
    """A named identity; photo_count is the number of distinct photos of that person."""

    id: int
    name: str
    representative_face_id: int | None
    photo_count: int = 0


@dataclass
class FaceCluster:
    """Transient grouping of faces produced by one clustering run."""

    index: int
    faces: list[Face]
    sample_face_id: int
    average_descriptor: np.ndarray
    person_id: int | None

    @property
    def face_ids(self) -> list[int]:
        return [face.id for face in self.faces]


@dataclass
class DetectorConfig:
    """Parameters handed to the extraction capability for one photo."""

    input_size: int
    score_threshold: float


@dataclass
class Detection:
    """Raw extractor output for one face."""

    bounding_box: BoundingBox
    confidence: float
    descriptor: list[float]


@dataclass
class DetectionSettings:
    """User-facing knobs for a detection batch."""

    quality: Quality = Quality(DEFAULT_QUALITY)
    sensitivity: float = DEFAULT_SENSITIVITY
    min_face_size: int = DEFAULT_MIN_FACE_SIZE

    def __post_init__(self) -> None:
        try:
            self.quality = Quality(self.quality)
        except ValueError:
            raise ValueError(
                f"quality must be one of {', '.join(q.value for q in Quality)}, got {self.quality!r}"
            ) from None
        low, high = SENSITIVITY_RANGE
        if not low <= self.sensitivity <= high:
            raise ValueError(f"sensitivity must be within {low}-{high}, got {self.sensitivity}")
        if self.min_face_size < 0:
            raise ValueError(f"min_face_size must not be negative, got {self.min_face_size}")

    def to_detector_config(self) -> DetectorConfig:
        return DetectorConfig(
            input_size=QUALITY_INPUT_SIZES[self.quality.value],
            score_threshold=self.sensitivity,
        )


@dataclass
class DetectionProgress:
    phase: ProgressPhase
    current_file: str
    processed: int
    total: int
    percentage: int
    error: str | None = None


@dataclass
class DetectionSummary:
    """Aggregate result of a detection batch; errors are "<filename>: <message>"."""

    total_faces: int = 0
    photos_processed: int = 0
    errors: list[str] = field(default_factory=list)
    aborted: bool = False
