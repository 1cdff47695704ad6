"""Tests for the person directory and people filters."""

from datetime import datetime

import pytest
from conftest import add_face, add_photo

from photo_curator.exceptions import FaceNotFoundError, LabelingError, PersonNotFoundError
from photo_curator.faces.clustering import cluster_faces
from photo_curator.faces.people import (
    assign_face_to_person,
    create_person,
    delete_person,
    filter_photos_by_people,
    get_all_people,
    get_photo_count_for_person,
    get_photos_by_person,
    label_cluster,
    rename_person,
)
from photo_curator.faces.repository import get_all_faces, get_face


def _cluster_of(conn):
    return cluster_faces(get_all_faces(conn), threshold=0.6)


def test_label_cluster_assigns_all_faces(db_conn):
    p1 = add_photo(db_conn, "p1")
    p2 = add_photo(db_conn, "p2")
    first = add_face(db_conn, p1, [0.0, 0.0])
    second = add_face(db_conn, p2, [0.1, 0.0])
    add_face(db_conn, p2, [5.0, 5.0])

    cluster = _cluster_of(db_conn)[0]
    person = label_cluster(db_conn, cluster, "  Ada ")

    assert person.name == "Ada"
    assert person.representative_face_id == first
    assert person.photo_count == 2
    assert get_face(db_conn, first).person_id == person.id
    assert get_face(db_conn, second).person_id == person.id
    assert _cluster_of(db_conn)[0].person_id == person.id


def test_label_cluster_reuses_person_with_same_name(db_conn):
    p1 = add_photo(db_conn, "p1")
    add_face(db_conn, p1, [0.0, 0.0])
    add_face(db_conn, p1, [9.0, 9.0])
    first_cluster, second_cluster = _cluster_of(db_conn)

    ada = label_cluster(db_conn, first_cluster, "Ada")
    again = label_cluster(db_conn, second_cluster, "ada")
    assert again.id == ada.id
    assert len(get_all_people(db_conn)) == 1


def test_label_cluster_is_all_or_nothing(db_conn):
    p1 = add_photo(db_conn, "p1")
    keep = add_face(db_conn, p1, [0.0, 0.0])
    gone = add_face(db_conn, p1, [0.1, 0.0])
    cluster = _cluster_of(db_conn)[0]
    db_conn.execute("DELETE FROM faces WHERE id = ?", [gone])

    with pytest.raises(LabelingError):
        label_cluster(db_conn, cluster, "Ada")

    assert get_face(db_conn, keep).person_id is None
    assert get_all_people(db_conn) == []


def test_label_cluster_rejects_empty_name(db_conn):
    p1 = add_photo(db_conn, "p1")
    add_face(db_conn, p1)
    with pytest.raises(ValueError):
        label_cluster(db_conn, _cluster_of(db_conn)[0], "   ")


def test_create_person_with_sample_face(db_conn):
    p1 = add_photo(db_conn, "p1")
    face_id = add_face(db_conn, p1)
    person = create_person(db_conn, "Grace", face_id)
    assert person.representative_face_id == face_id
    assert person.photo_count == 0
    with pytest.raises(FaceNotFoundError):
        create_person(db_conn, "Nobody", 9999)


def test_assign_and_rename(db_conn):
    p1 = add_photo(db_conn, "p1")
    face_id = add_face(db_conn, p1)
    person = create_person(db_conn, "Grace")

    assign_face_to_person(db_conn, face_id, person.id)
    assert get_photo_count_for_person(db_conn, person.id) == 1
    assert rename_person(db_conn, person.id, "Grace Hopper").name == "Grace Hopper"

    assign_face_to_person(db_conn, face_id, None)
    assert get_face(db_conn, face_id).person_id is None

    with pytest.raises(PersonNotFoundError):
        assign_face_to_person(db_conn, face_id, 9999)
    with pytest.raises(FaceNotFoundError):
        assign_face_to_person(db_conn, 9999, person.id)


def test_delete_person_unassigns_faces(db_conn):
    p1 = add_photo(db_conn, "p1")
    person = create_person(db_conn, "Ada")
    faces = [add_face(db_conn, p1, person_id=person.id) for _ in range(2)]

    assert delete_person(db_conn, person.id) is True
    assert person.id not in [p.id for p in get_all_people(db_conn)]
    assert [get_face(db_conn, f).person_id for f in faces] == [None, None]
    assert delete_person(db_conn, person.id) is False


def test_photo_count_is_distinct_photos(db_conn):
    p1 = add_photo(db_conn, "p1")
    p2 = add_photo(db_conn, "p2")
    person = create_person(db_conn, "Ada")
    for photo_id in (p1, p1, p1, p2):
        add_face(db_conn, photo_id, person_id=person.id)
    assert get_photo_count_for_person(db_conn, person.id) == 2
    with pytest.raises(PersonNotFoundError):
        get_photo_count_for_person(db_conn, 9999)


@pytest.fixture
def family(db_conn):
    """Photos: a_only, a_and_b, a_and_stranger, b_only, nobody."""
    a = create_person(db_conn, "A").id
    b = create_person(db_conn, "B").id
    photos = {}
    for day, name in enumerate(["a_only", "a_and_b", "a_and_stranger", "b_only", "nobody"], 1):
        photos[name] = add_photo(db_conn, name, capture_date=datetime(2024, 5, day))
    add_face(db_conn, photos["a_only"], person_id=a)
    add_face(db_conn, photos["a_only"], person_id=a)
    add_face(db_conn, photos["a_and_b"], person_id=a)
    add_face(db_conn, photos["a_and_b"], person_id=b)
    add_face(db_conn, photos["a_and_stranger"], person_id=a)
    add_face(db_conn, photos["a_and_stranger"], person_id=None)
    add_face(db_conn, photos["b_only"], person_id=b)
    add_face(db_conn, photos["nobody"], person_id=None)
    return a, b


def _names(photos):
    return [p.filename.removesuffix(".jpg") for p in photos]


def test_filter_any(db_conn, family):
    a, b = family
    assert _names(filter_photos_by_people(db_conn, [a], "any")) == [
        "a_only",
        "a_and_b",
        "a_and_stranger",
    ]
    assert _names(filter_photos_by_people(db_conn, [a, b], "any")) == [
        "a_only",
        "a_and_b",
        "a_and_stranger",
        "b_only",
    ]


def test_filter_only_ignores_unidentified_faces(db_conn, family):
    a, _ = family
    assert _names(filter_photos_by_people(db_conn, [a], "only")) == ["a_only", "a_and_stranger"]


def test_filter_only_with_several_people(db_conn, family):
    a, b = family
    assert _names(filter_photos_by_people(db_conn, [a, b], "only")) == [
        "a_only",
        "a_and_b",
        "a_and_stranger",
        "b_only",
    ]


def test_filter_excludes_hidden_photos(db_conn, family):
    a, _ = family
    hidden = add_photo(db_conn, "hidden", is_hidden=True)
    add_face(db_conn, hidden, person_id=a)
    assert "hidden" not in _names(filter_photos_by_people(db_conn, [a], "any"))


def test_filter_empty_selection_and_bad_mode(db_conn, family):
    assert filter_photos_by_people(db_conn, [], "any") == []
    with pytest.raises(ValueError):
        filter_photos_by_people(db_conn, [family[0]], "all")


def test_get_photos_by_person(db_conn, family):
    _, b = family
    assert _names(get_photos_by_person(db_conn, b)) == ["a_and_b", "b_only"]


def test_filter_properties_hold_for_every_result(db_conn, family):
    a, b = family
    for ids in ([a], [b], [a, b]):
        for photo in filter_photos_by_people(db_conn, ids, "any"):
            labels = {
                r[0]
                for r in db_conn.execute(
                    "SELECT person_id FROM faces WHERE photo_id = ?", [photo.id]
                ).fetchall()
            }
            assert labels & set(ids)
        for photo in filter_photos_by_people(db_conn, ids, "only"):
            labels = {
                r[0]
                for r in db_conn.execute(
                    "SELECT person_id FROM faces WHERE photo_id = ? AND person_id IS NOT NULL",
                    [photo.id],
                ).fetchall()
            }
            assert labels <= set(ids)
