"""Register photos from a directory in the library DB.

Walks the directory for JPEG/PNG/HEIC files, reads the capture date from EXIF
(falling back to the file modification time) and inserts one photo row per
file. Already registered paths are skipped.

Usage: python scripts/register_photos.py <photo-dir> [--db PATH]
"""

import argparse
from datetime import datetime
from pathlib import Path

from PIL import Image, UnidentifiedImageError
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

from photo_curator.db import get_connection
from photo_curator.library.repository import get_photo_by_path, insert_photo
from photo_curator.models import Photo

PHOTO_SUFFIXES = {".jpg", ".jpeg", ".png", ".heic"}
EXIF_DATETIME_ORIGINAL = 0x9003
EXIF_DATETIME = 0x0132
EXIF_IFD = 0x8769


def read_capture_date(path: Path) -> datetime:
    """EXIF DateTimeOriginal, else DateTime, else file mtime."""
    try:
        with Image.open(path) as img:
            exif = img.getexif()
    except (UnidentifiedImageError, OSError):
        exif = None

    if exif:
        raw = exif.get_ifd(EXIF_IFD).get(EXIF_DATETIME_ORIGINAL) or exif.get(EXIF_DATETIME)
        if raw:
            try:
                return datetime.strptime(str(raw).strip(), "%Y:%m:%d %H:%M:%S")
            except ValueError:
                pass
    return datetime.fromtimestamp(path.stat().st_mtime)


def build_photo(path: Path, root: Path) -> Photo:
    captured = read_capture_date(path)
    iso_year, iso_week, _ = captured.isocalendar()
    parent = path.parent.relative_to(root)
    return Photo(
        id=None,
        path=str(path),
        filename=path.name,
        capture_date=captured,
        week_number=iso_week,
        year=iso_year,
        subdirectory=str(parent) if parent != Path(".") else None,
        is_favorite=False,
        is_hidden=False,
        created_at=None,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Register photos in the library DB")
    parser.add_argument("directory", type=Path, help="Directory to scan recursively")
    parser.add_argument("--db", default=None, help="DuckDB file (default: project-root DB)")
    args = parser.parse_args()

    root = args.directory.resolve()
    files = sorted(p for p in root.rglob("*") if p.suffix.lower() in PHOTO_SUFFIXES)
    print(f"Found {len(files)} photo files under {root}")

    conn = get_connection(args.db)
    added = 0

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.completed}/{task.total}"),
    ) as progress:
        task = progress.add_task("Registering photos", total=len(files))
        for path in files:
            if get_photo_by_path(conn, str(path)) is None:
                insert_photo(conn, build_photo(path, root))
                added += 1
            progress.advance(task)

    conn.close()
    print(f"Done. Registered {added} new photos ({len(files) - added} already known).")


if __name__ == "__main__":
    main()
