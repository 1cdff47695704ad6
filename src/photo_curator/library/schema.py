"""DuckDB schema definition."""

import duckdb


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create tables and indexes if they do not exist."""
    conn.execute("CREATE SEQUENCE IF NOT EXISTS photos_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id           INTEGER PRIMARY KEY DEFAULT nextval('photos_id_seq'),
            path         VARCHAR NOT NULL UNIQUE,
            filename     VARCHAR NOT NULL,
            capture_date TIMESTAMP,
            week_number  INTEGER,
            year         INTEGER,
            subdirectory VARCHAR,
            is_favorite  BOOLEAN NOT NULL DEFAULT false,
            is_hidden    BOOLEAN NOT NULL DEFAULT false,
            created_at   TIMESTAMP DEFAULT current_timestamp
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_photos_week ON photos(year, week_number)")

    # faces table (1:N relationship with photos). person_id must stay unindexed
    # and without a foreign key: DuckDB rewrites updates of indexed columns as
    # delete+insert, which fails constraint checks inside a transaction.
    conn.execute("CREATE SEQUENCE IF NOT EXISTS faces_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS faces (
            id          INTEGER PRIMARY KEY DEFAULT nextval('faces_id_seq'),
            photo_id    INTEGER NOT NULL,
            descriptor  FLOAT[] NOT NULL,
            bbox_x      FLOAT NOT NULL,
            bbox_y      FLOAT NOT NULL,
            bbox_width  FLOAT NOT NULL,
            bbox_height FLOAT NOT NULL,
            person_id   INTEGER,
            confidence  FLOAT NOT NULL,
            created_at  TIMESTAMP DEFAULT current_timestamp,
            FOREIGN KEY (photo_id) REFERENCES photos(id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_faces_photo_id ON faces(photo_id)")

    conn.execute("CREATE SEQUENCE IF NOT EXISTS people_id_seq START 1")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS people (
            id                     INTEGER PRIMARY KEY DEFAULT nextval('people_id_seq'),
            name                   VARCHAR NOT NULL,
            representative_face_id INTEGER,
            created_at             TIMESTAMP DEFAULT current_timestamp
        )
    """)
