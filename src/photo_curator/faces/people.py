"""Named people on top of face clusters, and people-based photo filters."""

import logging

import duckdb

from photo_curator.exceptions import FaceNotFoundError, LabelingError, PersonNotFoundError
from photo_curator.faces import repository
from photo_curator.models import FaceCluster, FilterMode, Person, Photo

logger = logging.getLogger(__name__)


def _clean_name(name: str) -> str:
    cleaned = name.strip() if name else ""
    if not cleaned:
        raise ValueError("Person name must not be empty")
    return cleaned


def create_person(
    conn: duckdb.DuckDBPyConnection,
    name: str,
    sample_face_id: int | None = None,
) -> Person:
    """Create a person, optionally with a representative face."""
    name = _clean_name(name)
    if sample_face_id is not None and repository.get_face(conn, sample_face_id) is None:
        raise FaceNotFoundError(f"Face {sample_face_id} does not exist")
    person_id = repository.insert_person(conn, name, sample_face_id)
    logger.info("Created person %d (%s)", person_id, name)
    return repository.get_person(conn, person_id)


def label_cluster(
    conn: duckdb.DuckDBPyConnection,
    cluster: FaceCluster,
    name: str,
    reuse_existing: bool = True,
) -> Person:
    """Assign every face of ``cluster`` to the person called ``name``.

    With ``reuse_existing`` an existing person of the same name (case
    insensitive) is reused; otherwise a new person is created with the
    cluster's sample face as representative. Either all faces are reassigned
    or none are.

    Raises:
        LabelingError: a member face no longer exists or the store failed;
            nothing was changed.
    """
    name = _clean_name(name)
    conn.begin()
    try:
        person = repository.find_person_by_name(conn, name) if reuse_existing else None
        if person is None:
            person_id = repository.insert_person(conn, name, cluster.sample_face_id)
        else:
            person_id = person.id
            if person.representative_face_id is None:
                repository.update_person(conn, person_id, person.name, cluster.sample_face_id)

        missing = [
            face_id
            for face_id in cluster.face_ids
            if not repository.update_face_person(conn, face_id, person_id)
        ]
        if missing:
            raise LabelingError(
                f"Cannot label cluster {cluster.index} as {name!r}: "
                f"faces {missing} no longer exist",
                details={"missing_face_ids": missing},
            )
        conn.commit()
    except LabelingError:
        conn.rollback()
        raise
    except duckdb.Error as e:
        conn.rollback()
        raise LabelingError(f"Cannot label cluster {cluster.index} as {name!r}: {e}") from e

    logger.info("Labelled %d faces as %s (person %d)", len(cluster.faces), name, person_id)
    return repository.get_person(conn, person_id)


def rename_person(conn: duckdb.DuckDBPyConnection, person_id: int, name: str) -> Person:
    person = _require_person(conn, person_id)
    repository.update_person(conn, person_id, _clean_name(name), person.representative_face_id)
    return repository.get_person(conn, person_id)


def assign_face_to_person(
    conn: duckdb.DuckDBPyConnection,
    face_id: int,
    person_id: int | None,
) -> None:
    """Manually (re)label one face; ``None`` clears its person."""
    if person_id is not None:
        _require_person(conn, person_id)
    if not repository.update_face_person(conn, face_id, person_id):
        raise FaceNotFoundError(f"Face {face_id} does not exist")


def delete_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> bool:
    """Delete a person after unassigning its faces. Faces are kept.

    Returns False if no such person exists.
    """
    conn.begin()
    try:
        unassigned = repository.unassign_faces_of_person(conn, person_id)
        deleted = repository.delete_person(conn, person_id)
        conn.commit()
    except duckdb.Error:
        conn.rollback()
        raise
    if deleted:
        logger.info("Deleted person %d, unassigned %d faces", person_id, unassigned)
    return deleted


def get_all_people(conn: duckdb.DuckDBPyConnection) -> list[Person]:
    return repository.get_all_people(conn)


def get_photo_count_for_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> int:
    """Number of distinct photos the person appears in (not the number of faces)."""
    return _require_person(conn, person_id).photo_count


def get_photos_by_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> list[Photo]:
    return repository.get_photos_by_person(conn, person_id)


def filter_photos_by_people(
    conn: duckdb.DuckDBPyConnection,
    person_ids: list[int],
    mode: FilterMode | str = FilterMode.ANY,
) -> list[Photo]:
    """Photos that involve the given people.

    ``any``: photos with at least one of them. ``only``: photos with at least
    one of them and no other identified person; unidentified faces are
    ignored. An empty selection matches nothing.
    """
    try:
        mode = FilterMode(mode)
    except ValueError:
        raise ValueError(f"mode must be 'any' or 'only', got {mode!r}") from None
    return repository.get_photos_by_people(conn, list(person_ids), mode)


def _require_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> Person:
    person = repository.get_person(conn, person_id)
    if person is None:
        raise PersonNotFoundError(f"Person {person_id} does not exist")
    return person
