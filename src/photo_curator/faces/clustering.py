"""Greedy distance-threshold clustering of face descriptors.

Faces are visited in input order. Each face not yet claimed seeds a cluster
made of every unclaimed face within ``threshold`` (Euclidean) of it, nearest
first. A single pass, no merging: a face close to two neighbourhoods lands in
whichever seed reaches it first, so the grouping depends on input order.
"""

from collections import Counter

import numpy as np

from photo_curator.config import CLUSTER_DISTANCE_THRESHOLD
from photo_curator.exceptions import ClusteringInputError
from photo_curator.models import Face, FaceCluster


def descriptor_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two descriptors of equal length."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape:
        raise ClusteringInputError(
            f"Descriptors must have the same length ({a.shape[0]} != {b.shape[0]})"
        )
    return float(np.linalg.norm(a - b))


def find_similar_faces(
    descriptor: np.ndarray,
    faces: list[Face],
    threshold: float = CLUSTER_DISTANCE_THRESHOLD,
) -> list[Face]:
    """Return faces strictly closer than ``threshold`` to ``descriptor``, nearest first."""
    if not faces:
        return []
    matrix = _descriptor_matrix(faces)
    distances = _distances_to(matrix, np.asarray(descriptor, dtype=np.float32))
    return [faces[i] for i in _within(distances, threshold)]


def average_descriptor(descriptors: list[np.ndarray]) -> np.ndarray:
    """Component-wise mean of descriptors."""
    if not descriptors:
        return np.zeros(0, dtype=np.float32)
    return np.mean(np.vstack(descriptors), axis=0).astype(np.float32)


def cluster_faces(
    faces: list[Face],
    threshold: float = CLUSTER_DISTANCE_THRESHOLD,
) -> list[FaceCluster]:
    """Partition ``faces`` into clusters of likely-same people.

    Every face ends up in exactly one cluster; a face with no neighbour within
    the threshold forms a cluster of its own. The same faces in the same order
    always give the same clusters. Existing person labels are reported on the
    cluster but never changed.

    Raises:
        ClusteringInputError: descriptors differ in length.
    """
    if threshold <= 0:
        raise ValueError(f"threshold must be positive, got {threshold}")
    if not faces:
        return []

    matrix = _descriptor_matrix(faces)
    assigned = np.zeros(len(faces), dtype=bool)
    clusters: list[FaceCluster] = []

    for seed in range(len(faces)):
        if assigned[seed]:
            continue
        distances = _distances_to(matrix, matrix[seed])
        members = [i for i in _within(distances, threshold) if not assigned[i]]
        if not members:
            continue
        assigned[members] = True

        grouped = [faces[i] for i in members]
        clusters.append(
            FaceCluster(
                index=len(clusters),
                faces=grouped,
                sample_face_id=grouped[0].id,
                average_descriptor=average_descriptor([matrix[i] for i in members]),
                person_id=_dominant_person(grouped),
            )
        )

    return clusters


def _descriptor_matrix(faces: list[Face]) -> np.ndarray:
    lengths = {len(face.descriptor) for face in faces}
    if len(lengths) > 1:
        raise ClusteringInputError(
            f"Descriptors must have the same length, got {sorted(lengths)}",
            details={"lengths": sorted(lengths)},
        )
    return np.vstack([np.asarray(face.descriptor, dtype=np.float32) for face in faces])


def _distances_to(matrix: np.ndarray, descriptor: np.ndarray) -> np.ndarray:
    if descriptor.shape[0] != matrix.shape[1]:
        raise ClusteringInputError(
            f"Descriptors must have the same length ({descriptor.shape[0]} != {matrix.shape[1]})"
        )
    return np.linalg.norm(matrix - descriptor, axis=1)


def _within(distances: np.ndarray, threshold: float) -> list[int]:
    """Indices below threshold sorted by distance; ties keep input order."""
    candidates = np.flatnonzero(distances < threshold)
    order = np.argsort(distances[candidates], kind="stable")
    return candidates[order].tolist()


def _dominant_person(faces: list[Face]) -> int | None:
    """Most common non-null person_id; the first seen wins ties."""
    counts = Counter(face.person_id for face in faces if face.person_id is not None)
    if not counts:
        return None
    return counts.most_common(1)[0][0]
