"""CRUD operations for faces and people in DuckDB."""

import duckdb
import numpy as np

from photo_curator.library.repository import PHOTO_COLUMNS, _row_to_photo
from photo_curator.models import BoundingBox, Face, FilterMode, Person, Photo

FACE_COLUMNS = (
    "id, photo_id, descriptor, bbox_x, bbox_y, bbox_width, bbox_height, person_id, confidence"
)

_PERSON_SELECT = """
    SELECT p.id, p.name, p.representative_face_id,
           COUNT(DISTINCT f.photo_id) AS photo_count
    FROM people p
    LEFT JOIN faces f ON f.person_id = p.id
"""


def insert_face(conn: duckdb.DuckDBPyConnection, face: Face) -> int:
    """Insert a face record and return its id."""
    box = face.bounding_box
    row = conn.execute(
        """
        INSERT INTO faces
        (photo_id, descriptor, bbox_x, bbox_y, bbox_width, bbox_height, person_id, confidence)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        RETURNING id
        """,
        [
            face.photo_id,
            np.asarray(face.descriptor, dtype=np.float32).tolist(),
            box.x,
            box.y,
            box.width,
            box.height,
            face.person_id,
            face.confidence,
        ],
    ).fetchone()
    return row[0]


def delete_faces_by_photo_id(conn: duckdb.DuckDBPyConnection, photo_id: int) -> int:
    """Delete every face of a photo, returning how many were removed."""
    rows = conn.execute("DELETE FROM faces WHERE photo_id = ? RETURNING id", [photo_id]).fetchall()
    return len(rows)


def get_face(conn: duckdb.DuckDBPyConnection, face_id: int) -> Face | None:
    row = conn.execute(f"SELECT {FACE_COLUMNS} FROM faces WHERE id = ?", [face_id]).fetchone()
    return _row_to_face(row) if row else None


def get_all_faces(conn: duckdb.DuckDBPyConnection) -> list[Face]:
    """Return every stored face in insertion order."""
    rows = conn.execute(f"SELECT {FACE_COLUMNS} FROM faces ORDER BY id").fetchall()
    return [_row_to_face(row) for row in rows]


def get_faces_for_photo(conn: duckdb.DuckDBPyConnection, photo_id: int) -> list[Face]:
    rows = conn.execute(
        f"SELECT {FACE_COLUMNS} FROM faces WHERE photo_id = ? ORDER BY confidence DESC, id",
        [photo_id],
    ).fetchall()
    return [_row_to_face(row) for row in rows]


def get_face_count(conn: duckdb.DuckDBPyConnection, photo_id: int) -> int:
    row = conn.execute("SELECT COUNT(*) FROM faces WHERE photo_id = ?", [photo_id]).fetchone()
    return row[0] if row else 0


def update_face_person(
    conn: duckdb.DuckDBPyConnection,
    face_id: int,
    person_id: int | None,
) -> bool:
    """Set or clear the person of a face. Returns False if the face does not exist."""
    rows = conn.execute(
        "UPDATE faces SET person_id = ? WHERE id = ? RETURNING id",
        [person_id, face_id],
    ).fetchall()
    return len(rows) > 0


def unassign_faces_of_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> int:
    """Clear person_id on every face of a person, returning how many faces changed."""
    rows = conn.execute(
        "UPDATE faces SET person_id = NULL WHERE person_id = ? RETURNING id",
        [person_id],
    ).fetchall()
    return len(rows)


def insert_person(
    conn: duckdb.DuckDBPyConnection,
    name: str,
    representative_face_id: int | None = None,
) -> int:
    row = conn.execute(
        "INSERT INTO people (name, representative_face_id) VALUES (?, ?) RETURNING id",
        [name, representative_face_id],
    ).fetchone()
    return row[0]


def update_person(
    conn: duckdb.DuckDBPyConnection,
    person_id: int,
    name: str,
    representative_face_id: int | None = None,
) -> bool:
    rows = conn.execute(
        "UPDATE people SET name = ?, representative_face_id = ? WHERE id = ? RETURNING id",
        [name, representative_face_id, person_id],
    ).fetchall()
    return len(rows) > 0


def delete_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> bool:
    """Delete a person row. Callers unassign its faces first."""
    rows = conn.execute("DELETE FROM people WHERE id = ? RETURNING id", [person_id]).fetchall()
    return len(rows) > 0


def get_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> Person | None:
    row = conn.execute(
        _PERSON_SELECT + " WHERE p.id = ? GROUP BY p.id, p.name, p.representative_face_id",
        [person_id],
    ).fetchone()
    return _row_to_person(row) if row else None


def find_person_by_name(conn: duckdb.DuckDBPyConnection, name: str) -> Person | None:
    """Case-insensitive exact name lookup; the oldest match wins."""
    row = conn.execute(
        _PERSON_SELECT
        + """
        WHERE lower(p.name) = lower(?)
        GROUP BY p.id, p.name, p.representative_face_id
        ORDER BY p.id
        LIMIT 1
        """,
        [name.strip()],
    ).fetchone()
    return _row_to_person(row) if row else None


def get_all_people(conn: duckdb.DuckDBPyConnection) -> list[Person]:
    """Return all people with their distinct photo counts, ordered by name."""
    rows = conn.execute(
        _PERSON_SELECT + " GROUP BY p.id, p.name, p.representative_face_id ORDER BY p.name, p.id"
    ).fetchall()
    return [_row_to_person(row) for row in rows]


def get_photos_by_person(conn: duckdb.DuckDBPyConnection, person_id: int) -> list[Photo]:
    return get_photos_by_people(conn, [person_id], FilterMode.ANY)


def get_photos_by_people(
    conn: duckdb.DuckDBPyConnection,
    person_ids: list[int],
    mode: FilterMode = FilterMode.ANY,
) -> list[Photo]:
    """Return visible photos matching the people filter, in capture order.

    ``any``: at least one face belongs to one of ``person_ids``.
    ``only``: at least one face belongs to one of ``person_ids`` and no face
    belongs to an identified person outside them. Unidentified faces are ignored.
    """
    if not person_ids:
        return []
    placeholders = ", ".join(["?"] * len(person_ids))
    params: list = list(person_ids)

    where_sql = f"""
        p.id IN (SELECT photo_id FROM faces WHERE person_id IN ({placeholders}))
        AND NOT p.is_hidden
    """
    if FilterMode(mode) is FilterMode.ONLY:
        where_sql += f"""
        AND p.id NOT IN (
            SELECT photo_id FROM faces
            WHERE person_id IS NOT NULL AND person_id NOT IN ({placeholders})
        )
        """
        params.extend(person_ids)

    columns = ", ".join(f"p.{col.strip()}" for col in PHOTO_COLUMNS.split(","))
    rows = conn.execute(
        f"""
        SELECT {columns}
        FROM photos p
        WHERE {where_sql}
        ORDER BY p.capture_date ASC NULLS LAST, p.id ASC
        """,
        params,
    ).fetchall()
    return [_row_to_photo(row) for row in rows]


def get_face_stats(conn: duckdb.DuckDBPyConnection) -> dict[str, int]:
    """Return photo, face and people counts for status output."""
    row = conn.execute(
        """
        SELECT
            (SELECT COUNT(*) FROM photos WHERE NOT is_hidden),
            (SELECT COUNT(DISTINCT photo_id) FROM faces),
            (SELECT COUNT(*) FROM faces),
            (SELECT COUNT(*) FROM faces WHERE person_id IS NOT NULL),
            (SELECT COUNT(*) FROM people)
        """
    ).fetchone()
    return {
        "photos": row[0],
        "photos_with_faces": row[1],
        "faces": row[2],
        "labelled_faces": row[3],
        "people": row[4],
    }


def clear_all_faces_and_people(conn: duckdb.DuckDBPyConnection) -> tuple[int, int]:
    """Delete every face and person, returning (faces_deleted, people_deleted)."""
    conn.begin()
    try:
        faces_deleted = len(conn.execute("DELETE FROM faces RETURNING id").fetchall())
        people_deleted = len(conn.execute("DELETE FROM people RETURNING id").fetchall())
        conn.commit()
    except duckdb.Error:
        conn.rollback()
        raise
    return faces_deleted, people_deleted


def _row_to_face(row: tuple) -> Face:
    """Convert a DB row tuple (FACE_COLUMNS order) to a Face."""
    return Face(
        id=row[0],
        photo_id=row[1],
        descriptor=np.array(row[2], dtype=np.float32),
        bounding_box=BoundingBox(x=row[3], y=row[4], width=row[5], height=row[6]),
        person_id=row[7],
        confidence=row[8],
    )


def _row_to_person(row: tuple) -> Person:
    return Person(
        id=row[0],
        name=row[1],
        representative_face_id=row[2],
        photo_count=row[3] or 0,
    )
