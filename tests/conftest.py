"""Shared test fixtures."""

from datetime import datetime

import duckdb
import numpy as np
import pytest

from photo_curator.faces.repository import insert_face
from photo_curator.library.repository import insert_photo
from photo_curator.library.schema import ensure_schema
from photo_curator.models import BoundingBox, Face, Photo


@pytest.fixture
def db_conn():
    """In-memory DuckDB connection with schema initialized."""
    conn = duckdb.connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def sample_photo() -> Photo:
    """A single Photo fixture."""
    return Photo(
        id=None,
        path="/photos/2024/beach/IMG_0001.jpg",
        filename="IMG_0001.jpg",
        capture_date=datetime(2024, 7, 14, 10, 30),
        week_number=28,
        year=2024,
        subdirectory="beach",
        is_favorite=False,
        is_hidden=False,
        created_at=None,
    )


def make_photo(
    name: str,
    capture_date: datetime | None = None,
    is_hidden: bool = False,
) -> Photo:
    """Helper to create a Photo with a unique path."""
    captured = capture_date or datetime(2024, 1, 1)
    iso_year, iso_week, _ = captured.isocalendar()
    return Photo(
        id=None,
        path=f"/photos/{name}.jpg",
        filename=f"{name}.jpg",
        capture_date=captured,
        week_number=iso_week,
        year=iso_year,
        subdirectory=None,
        is_favorite=False,
        is_hidden=is_hidden,
        created_at=None,
    )


def make_face(
    photo_id: int,
    descriptor: list[float] | None = None,
    person_id: int | None = None,
    face_id: int | None = None,
    size: float = 100.0,
) -> Face:
    """Helper to create a Face with a small descriptor."""
    return Face(
        id=face_id,
        photo_id=photo_id,
        descriptor=np.array(descriptor if descriptor is not None else [0.0, 0.0], dtype=np.float32),
        bounding_box=BoundingBox(x=10.0, y=20.0, width=size, height=size),
        person_id=person_id,
        confidence=0.9,
    )


def add_photo(conn, name: str, **kwargs) -> int:
    """Insert a photo and return its id."""
    return insert_photo(conn, make_photo(name, **kwargs))


def add_face(conn, photo_id: int, descriptor=None, person_id=None) -> int:
    """Insert a face and return its id."""
    return insert_face(conn, make_face(photo_id, descriptor, person_id))
