"""Batch face detection: photos -> worker -> filtered face records."""

import logging
from collections.abc import Callable
from typing import Protocol

import duckdb
import numpy as np

from photo_curator.exceptions import DetectionError, WorkerCrashedError, WorkerNotReadyError
from photo_curator.faces.repository import delete_faces_by_photo_id, insert_face
from photo_curator.models import (
    Detection,
    DetectionProgress,
    DetectionSettings,
    DetectionSummary,
    DetectorConfig,
    Face,
    Photo,
    ProgressPhase,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[DetectionProgress], None]


class Detector(Protocol):
    """The part of FaceWorkerManager the pipeline depends on."""

    @property
    def models_loaded(self) -> bool: ...

    async def detect(
        self, photo_id: int, image_path: str, config: DetectorConfig
    ) -> list[Detection]: ...


def filter_detections(detections: list[Detection], min_face_size: float) -> list[Detection]:
    """Drop detections whose larger box dimension is below ``min_face_size``."""
    return [d for d in detections if d.bounding_box.size >= min_face_size]


async def detect_faces_in_photos(
    conn: duckdb.DuckDBPyConnection,
    detector: Detector,
    photos: list[Photo],
    settings: DetectionSettings,
    progress: ProgressCallback | None = None,
) -> DetectionSummary:
    """Detect faces in ``photos`` one at a time and store them unlabelled.

    A photo's previous faces are removed before it is detected again, so a
    re-run replaces rather than accumulates. Per-photo failures are recorded in
    the summary and the batch continues; a worker crash stops the batch with
    the results gathered so far.

    Raises:
        WorkerNotReadyError: models are not loaded; no photo is attempted.
    """
    if not detector.models_loaded:
        raise WorkerNotReadyError("Face models are not loaded")

    config = settings.to_detector_config()
    summary = DetectionSummary()
    total = len(photos)
    attempted = 0

    def emit(phase: ProgressPhase, current_file: str, error: str | None = None) -> None:
        if progress is None:
            return
        percentage = 100 if phase is ProgressPhase.COMPLETE else _percentage(attempted, total)
        progress(DetectionProgress(phase, current_file, attempted, total, percentage, error))

    logger.info("Detecting faces in %d photos (%s)", total, settings.quality)
    emit(ProgressPhase.DETECTING, "Starting...")

    for photo in photos:
        try:
            faces = await _detect_photo(conn, detector, photo, config, settings.min_face_size)
        except (WorkerCrashedError, WorkerNotReadyError) as e:
            attempted += 1
            if isinstance(e, WorkerCrashedError):
                error = f"{photo.filename}: worker crashed: {e}"
            else:
                error = f"{photo.filename}: {e}"
            logger.error("Aborting batch: %s", error)
            summary.errors.append(error)
            summary.aborted = True
            emit(ProgressPhase.ERROR, photo.filename, error)
            return summary
        except (DetectionError, duckdb.Error) as e:
            attempted += 1
            logger.warning("Error detecting faces in %s: %s", photo.filename, e)
            summary.errors.append(f"{photo.filename}: {e}")
            emit(ProgressPhase.DETECTING, photo.filename)
            continue

        attempted += 1
        summary.total_faces += faces
        summary.photos_processed += 1
        emit(ProgressPhase.DETECTING, photo.filename)

    emit(ProgressPhase.COMPLETE, "Detection complete")
    logger.info(
        "Detection complete: %d faces in %d photos, %d errors",
        summary.total_faces,
        summary.photos_processed,
        len(summary.errors),
    )
    return summary


async def _detect_photo(
    conn: duckdb.DuckDBPyConnection,
    detector: Detector,
    photo: Photo,
    config: DetectorConfig,
    min_face_size: float,
) -> int:
    """Replace the stored faces of one photo, returning how many were kept."""
    removed = delete_faces_by_photo_id(conn, photo.id)
    if removed:
        logger.debug("Removed %d previous faces of %s", removed, photo.filename)

    detections = await detector.detect(photo.id, photo.path, config)
    kept = filter_detections(detections, min_face_size)

    conn.begin()
    try:
        for detection in kept:
            insert_face(
                conn,
                Face(
                    id=None,
                    photo_id=photo.id,
                    descriptor=np.asarray(detection.descriptor, dtype=np.float32),
                    bounding_box=detection.bounding_box,
                    person_id=None,
                    confidence=detection.confidence,
                ),
            )
        conn.commit()
    except duckdb.Error:
        conn.rollback()
        raise
    return len(kept)


def _percentage(done: int, total: int) -> int:
    return round(done / total * 100) if total else 100
