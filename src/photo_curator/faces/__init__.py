"""Faces CLI: detect, cluster, label and filter photos by people."""

import argparse


def main() -> None:
    """CLI entry point for face operations."""
    parser = argparse.ArgumentParser(description="Photo curator face detection and people")
    parser.add_argument("--db", default=None, help="DuckDB file (default: project-root DB)")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    # detect
    detect_parser = subparsers.add_parser("detect", help="Detect faces in library photos")
    detect_parser.add_argument(
        "--quality",
        choices=["fast", "balanced", "accurate"],
        default="balanced",
        help="Detector resolution tier (default: balanced)",
    )
    detect_parser.add_argument(
        "--sensitivity",
        type=float,
        default=0.5,
        help="Detector score threshold 0.3-0.9, lower finds more faces (default: 0.5)",
    )
    detect_parser.add_argument(
        "--min-face-size",
        type=int,
        default=40,
        help="Discard faces smaller than this many pixels (default: 40)",
    )
    detect_parser.add_argument("--year", type=int, default=None, help="Only photos from this year")
    detect_parser.add_argument("--week", type=int, default=None, help="Only photos from this week")
    detect_parser.add_argument(
        "--limit", type=int, default=None, help="Max number of photos to process (default: all)"
    )

    # cluster
    cluster_parser = subparsers.add_parser("cluster", help="Group detected faces into clusters")
    cluster_parser.add_argument(
        "--threshold", type=float, default=None, help="Distance threshold (default: 0.6)"
    )

    # label
    label_parser = subparsers.add_parser("label", help="Name a cluster from `cluster` output")
    label_parser.add_argument("cluster", type=int, help="Cluster number")
    label_parser.add_argument("name", help="Person name")
    label_parser.add_argument(
        "--threshold", type=float, default=None, help="Threshold used for `cluster`"
    )

    # people
    subparsers.add_parser("people", help="List people with photo counts")

    # assign
    assign_parser = subparsers.add_parser("assign", help="Assign a face to a person")
    assign_parser.add_argument("face_id", type=int)
    assign_parser.add_argument("person_id", help="Person id, or 'none' to unassign")

    # rename
    rename_parser = subparsers.add_parser("rename", help="Rename a person")
    rename_parser.add_argument("person_id", type=int)
    rename_parser.add_argument("name")

    # delete-person
    delete_parser = subparsers.add_parser("delete-person", help="Delete a person, keeping faces")
    delete_parser.add_argument("person_id", type=int)

    # filter
    filter_parser = subparsers.add_parser("filter", help="List photos with the given people")
    filter_parser.add_argument("person_ids", type=int, nargs="+")
    filter_parser.add_argument(
        "--mode",
        choices=["any", "only"],
        default="any",
        help="any: at least one of them; only: no other identified person (default: any)",
    )

    # clear
    subparsers.add_parser("clear", help="Delete all faces and people")

    # status
    subparsers.add_parser("status", help="Show face detection status")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    from photo_curator.log import setup_logging

    setup_logging(args.log_level)

    from photo_curator.exceptions import PhotoCuratorError

    try:
        _dispatch(args)
    except PhotoCuratorError as e:
        print(f"Error: {e}")
        raise SystemExit(1) from e


def _dispatch(args: argparse.Namespace) -> None:
    if args.command == "detect":
        _cmd_detect(args)
    elif args.command == "cluster":
        _cmd_cluster(args)
    elif args.command == "label":
        _cmd_label(args)
    elif args.command == "people":
        _cmd_people(args)
    elif args.command == "assign":
        _cmd_assign(args)
    elif args.command == "rename":
        _cmd_rename(args)
    elif args.command == "delete-person":
        _cmd_delete_person(args)
    elif args.command == "filter":
        _cmd_filter(args)
    elif args.command == "clear":
        _cmd_clear(args)
    elif args.command == "status":
        _cmd_status(args)


def _open_service(args: argparse.Namespace):
    from photo_curator.db import get_connection
    from photo_curator.faces.service import FaceService

    return FaceService(get_connection(args.db))


def _cmd_detect(args: argparse.Namespace) -> None:
    """Detect faces for library photos with a progress bar."""
    import asyncio

    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

    from photo_curator.library.repository import list_photos
    from photo_curator.models import DetectionProgress, DetectionSettings

    settings = DetectionSettings(
        quality=args.quality,
        sensitivity=args.sensitivity,
        min_face_size=args.min_face_size,
    )
    service = _open_service(args)
    photos = list_photos(service.conn, year=args.year, week_number=args.week)
    if args.limit is not None:
        photos = photos[: args.limit]
    if not photos:
        print("No photos to process.")
        service.conn.close()
        return

    print(f"Found {len(photos)} photos to process.")

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("{task.completed}/{task.total}"),
    ) as progress:
        task = progress.add_task("Loading models", total=len(photos))

        def on_progress(event: DetectionProgress) -> None:
            progress.update(
                task,
                description=f"{event.phase}: {event.current_file}",
                completed=event.processed,
            )

        async def run():
            async with service:
                return await service.detect_faces_in_photos(photos, settings, on_progress)

        summary = asyncio.run(run())

    service.conn.close()
    print("\nDone.")
    print(f"  Photos processed: {summary.photos_processed}/{len(photos)}")
    print(f"  Faces detected: {summary.total_faces}")
    if summary.errors:
        print(f"  Errors: {len(summary.errors)}")
        for error in summary.errors:
            print(f"    {error}")
    if summary.aborted:
        print("  Batch aborted: the face worker stopped before all photos were processed.")


def _print_clusters(clusters, people_by_id: dict) -> None:
    from rich.console import Console
    from rich.table import Table

    table = Table(title=f"{len(clusters)} clusters")
    table.add_column("#", justify="right")
    table.add_column("Faces", justify="right")
    table.add_column("Photos", justify="right")
    table.add_column("Sample face", justify="right")
    table.add_column("Person")
    for cluster in clusters:
        person = people_by_id.get(cluster.person_id)
        table.add_row(
            str(cluster.index),
            str(len(cluster.faces)),
            str(len({face.photo_id for face in cluster.faces})),
            str(cluster.sample_face_id),
            person.name if person else "-",
        )
    Console().print(table)


def _cmd_cluster(args: argparse.Namespace) -> None:
    service = _open_service(args)
    clusters = service.cluster_faces(args.threshold)
    if not clusters:
        print("No faces detected yet. Run `detect` first.")
    else:
        people_by_id = {p.id: p for p in service.get_all_people()}
        _print_clusters(clusters, people_by_id)
    service.conn.close()


def _cmd_label(args: argparse.Namespace) -> None:
    service = _open_service(args)
    clusters = service.cluster_faces(args.threshold)
    if not 0 <= args.cluster < len(clusters):
        print(f"No cluster {args.cluster} (found {len(clusters)}).")
        service.conn.close()
        return
    person = service.label_cluster(clusters[args.cluster], args.name)
    service.conn.close()
    print(f"Labelled cluster {args.cluster} as {person.name} (person {person.id}).")
    print(f"  Photos: {person.photo_count}")


def _cmd_people(args: argparse.Namespace) -> None:
    from rich.console import Console
    from rich.table import Table

    service = _open_service(args)
    people = service.get_all_people()
    service.conn.close()
    if not people:
        print("No people yet. Label a cluster first.")
        return
    table = Table(title=f"{len(people)} people")
    table.add_column("ID", justify="right")
    table.add_column("Name")
    table.add_column("Photos", justify="right")
    table.add_column("Face", justify="right")
    for person in people:
        table.add_row(
            str(person.id),
            person.name,
            str(person.photo_count),
            str(person.representative_face_id or "-"),
        )
    Console().print(table)


def _cmd_assign(args: argparse.Namespace) -> None:
    person_id = None if args.person_id.lower() == "none" else int(args.person_id)
    service = _open_service(args)
    service.assign_face_to_person(args.face_id, person_id)
    service.conn.close()
    print(f"Face {args.face_id} -> {person_id if person_id is not None else 'unassigned'}")


def _cmd_rename(args: argparse.Namespace) -> None:
    service = _open_service(args)
    person = service.rename_person(args.person_id, args.name)
    service.conn.close()
    print(f"Person {person.id} is now {person.name}.")


def _cmd_delete_person(args: argparse.Namespace) -> None:
    service = _open_service(args)
    deleted = service.delete_person(args.person_id)
    service.conn.close()
    print(f"Deleted person {args.person_id}." if deleted else f"No person {args.person_id}.")


def _cmd_filter(args: argparse.Namespace) -> None:
    service = _open_service(args)
    photos = service.get_photos_by_people(args.person_ids, args.mode)
    service.conn.close()
    for photo in photos:
        print(photo.path)
    print(f"{len(photos)} photos ({args.mode}).")


def _cmd_clear(args: argparse.Namespace) -> None:
    service = _open_service(args)
    result = service.clear_all_faces_and_people()
    service.conn.close()
    print(f"Deleted {result['faces_deleted']} faces and {result['people_deleted']} people.")


def _cmd_status(args: argparse.Namespace) -> None:
    """Show face detection status."""
    from photo_curator.faces.repository import get_face_stats

    service = _open_service(args)
    stats = get_face_stats(service.conn)
    service.conn.close()
    print(f"Photos: {stats['photos']}")
    print(f"Photos with faces: {stats['photos_with_faces']}")
    print(f"Faces detected: {stats['faces']}")
    print(f"Labelled faces: {stats['labelled_faces']}")
    print(f"People: {stats['people']}")
    if stats["photos_with_faces"] > 0:
        print(f"Average faces per photo: {stats['faces'] / stats['photos_with_faces']:.1f}")
