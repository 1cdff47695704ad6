"""CRUD operations for photo records in DuckDB."""

import duckdb

from photo_curator.models import Photo

PHOTO_COLUMNS = (
    "id, path, filename, capture_date, week_number, year, "
    "subdirectory, is_favorite, is_hidden, created_at"
)


def insert_photo(conn: duckdb.DuckDBPyConnection, photo: Photo) -> int:
    """Insert a photo and return its id. An existing path keeps its row and id."""
    row = conn.execute(
        """
        INSERT INTO photos (
            path, filename, capture_date, week_number, year,
            subdirectory, is_favorite, is_hidden
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (path) DO NOTHING
        RETURNING id
        """,
        [
            photo.path,
            photo.filename,
            photo.capture_date,
            photo.week_number,
            photo.year,
            photo.subdirectory,
            photo.is_favorite,
            photo.is_hidden,
        ],
    ).fetchone()
    if row is not None:
        return row[0]
    existing = conn.execute("SELECT id FROM photos WHERE path = ?", [photo.path]).fetchone()
    return existing[0]


def insert_photos(conn: duckdb.DuckDBPyConnection, photos: list[Photo]) -> list[int]:
    """Bulk insert photos, returning ids in input order."""
    return [insert_photo(conn, photo) for photo in photos]


def get_photo(conn: duckdb.DuckDBPyConnection, photo_id: int) -> Photo | None:
    row = conn.execute(f"SELECT {PHOTO_COLUMNS} FROM photos WHERE id = ?", [photo_id]).fetchone()
    return _row_to_photo(row) if row else None


def get_photo_by_path(conn: duckdb.DuckDBPyConnection, path: str) -> Photo | None:
    row = conn.execute(f"SELECT {PHOTO_COLUMNS} FROM photos WHERE path = ?", [path]).fetchone()
    return _row_to_photo(row) if row else None


def list_photos(
    conn: duckdb.DuckDBPyConnection,
    year: int | None = None,
    week_number: int | None = None,
    include_hidden: bool = False,
) -> list[Photo]:
    """List photos in capture order with optional filters."""
    query = f"SELECT {PHOTO_COLUMNS} FROM photos WHERE 1=1"
    params: list = []
    if not include_hidden:
        query += " AND NOT is_hidden"
    if year is not None:
        query += " AND year = ?"
        params.append(year)
    if week_number is not None:
        query += " AND week_number = ?"
        params.append(week_number)
    query += " ORDER BY capture_date ASC NULLS LAST, id ASC"
    rows = conn.execute(query, params).fetchall()
    return [_row_to_photo(row) for row in rows]


def _row_to_photo(row: tuple) -> Photo:
    """Convert a DB row tuple (PHOTO_COLUMNS order) to a Photo."""
    return Photo(
        id=row[0],
        path=row[1],
        filename=row[2],
        capture_date=row[3],
        week_number=row[4],
        year=row[5],
        subdirectory=row[6],
        is_favorite=bool(row[7]),
        is_hidden=bool(row[8]),
        created_at=row[9],
    )
