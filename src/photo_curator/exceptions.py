"""Exceptions raised by the face detection and people subsystems."""


class PhotoCuratorError(Exception):
    """Base exception for photo curator operations."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class FaceWorkerError(PhotoCuratorError):
    """Base exception for failures at the face worker process boundary."""


class WorkerStartupError(FaceWorkerError):
    """Raised when the worker process cannot be spawned or never signals ready."""


class ModelLoadError(FaceWorkerError):
    """Raised when the worker reports a model load failure or does not answer in time."""


class WorkerNotReadyError(FaceWorkerError):
    """Raised when a call needs a state the worker has not reached (e.g. models not loaded)."""


class WorkerCrashedError(FaceWorkerError):
    """Raised for requests that were outstanding when the worker process exited."""


class DetectionError(FaceWorkerError):
    """Raised when the worker reports an error for a specific photo."""


class DetectionTimeoutError(DetectionError):
    """Raised when no matching detection response arrives within the timeout."""


class ProtocolError(PhotoCuratorError):
    """Raised for malformed or unknown messages on the worker channel."""


class ClusteringInputError(PhotoCuratorError):
    """Raised when descriptors of different lengths are compared."""


class LabelingError(PhotoCuratorError):
    """Raised when a cluster cannot be fully assigned to a person."""


class PersonNotFoundError(PhotoCuratorError):
    """Raised when a person id does not reference an existing person."""


class FaceNotFoundError(PhotoCuratorError):
    """Raised when a face id does not reference an existing face."""
