"""Caller-facing face API used by the CLI (and any other front end)."""

import logging
from pathlib import Path

import duckdb
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from photo_curator.config import CLUSTER_DISTANCE_THRESHOLD, MODELS_DIR, WORKER_START_ATTEMPTS
from photo_curator.exceptions import WorkerStartupError
from photo_curator.faces import people, repository
from photo_curator.faces.clustering import cluster_faces
from photo_curator.faces.detection import ProgressCallback, detect_faces_in_photos
from photo_curator.faces.manager import FaceWorkerManager
from photo_curator.models import (
    DetectionProgress,
    DetectionSettings,
    DetectionSummary,
    FaceCluster,
    FilterMode,
    Person,
    Photo,
    ProgressPhase,
)

logger = logging.getLogger(__name__)


class FaceService:
    """Face detection, clustering and people operations over one database.

    Owns a FaceWorkerManager; call :meth:`close` (or use ``async with``) to
    stop the worker process.
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        manager: FaceWorkerManager | None = None,
        models_dir: Path = MODELS_DIR,
    ) -> None:
        self.conn = conn
        self.manager = manager or FaceWorkerManager()
        self.models_dir = Path(models_dir)

    async def __aenter__(self) -> "FaceService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @retry(
        retry=retry_if_exception_type(WorkerStartupError),
        stop=stop_after_attempt(WORKER_START_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )
    async def _start_worker(self) -> None:
        await self.manager.start()

    async def load_face_models(self, progress: ProgressCallback | None = None) -> None:
        """Start the worker if needed and load the models. Idempotent."""
        if self.manager.models_loaded:
            return
        if progress is not None:
            progress(DetectionProgress(ProgressPhase.LOADING_MODELS, "Loading face models", 0, 0, 0))
        await self._start_worker()
        await self.manager.load_models(str(self.models_dir))

    async def detect_faces_in_photos(
        self,
        photos: list[Photo],
        settings: DetectionSettings | None = None,
        progress: ProgressCallback | None = None,
    ) -> DetectionSummary:
        """Load models, then detect faces in ``photos``.

        Startup and model-load failures propagate before any photo is touched.
        """
        await self.load_face_models(progress)
        return await detect_faces_in_photos(
            self.conn, self.manager, photos, settings or DetectionSettings(), progress
        )

    def cluster_faces(self, threshold: float | None = None) -> list[FaceCluster]:
        """Cluster every stored face. An empty store gives an empty list."""
        faces = repository.get_all_faces(self.conn)
        clusters = cluster_faces(faces, CLUSTER_DISTANCE_THRESHOLD if threshold is None else threshold)
        logger.info("Clustered %d faces into %d clusters", len(faces), len(clusters))
        return clusters

    def label_cluster(self, cluster: FaceCluster, name: str) -> Person:
        return people.label_cluster(self.conn, cluster, name)

    def create_person(self, name: str, sample_face_id: int | None = None) -> Person:
        return people.create_person(self.conn, name, sample_face_id)

    def rename_person(self, person_id: int, name: str) -> Person:
        return people.rename_person(self.conn, person_id, name)

    def assign_face_to_person(self, face_id: int, person_id: int | None) -> None:
        people.assign_face_to_person(self.conn, face_id, person_id)

    def delete_person(self, person_id: int) -> bool:
        return people.delete_person(self.conn, person_id)

    def get_all_people(self) -> list[Person]:
        return people.get_all_people(self.conn)

    def get_photos_by_people(
        self, person_ids: list[int], mode: FilterMode | str = FilterMode.ANY
    ) -> list[Photo]:
        return people.filter_photos_by_people(self.conn, person_ids, mode)

    def clear_all_faces_and_people(self) -> dict[str, int]:
        faces_deleted, people_deleted = repository.clear_all_faces_and_people(self.conn)
        logger.info("Cleared %d faces and %d people", faces_deleted, people_deleted)
        return {"faces_deleted": faces_deleted, "people_deleted": people_deleted}

    async def close(self) -> None:
        await self.manager.shutdown()
