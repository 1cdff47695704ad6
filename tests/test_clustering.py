"""Tests for greedy face clustering."""

import numpy as np
import pytest
from conftest import make_face

from photo_curator.exceptions import ClusteringInputError
from photo_curator.faces.clustering import (
    average_descriptor,
    cluster_faces,
    descriptor_distance,
    find_similar_faces,
)


def faces_from(descriptors, person_ids=None):
    person_ids = person_ids or [None] * len(descriptors)
    return [
        make_face(photo_id=1, descriptor=d, person_id=p, face_id=i + 1)
        for i, (d, p) in enumerate(zip(descriptors, person_ids))
    ]


def test_descriptor_distance():
    assert descriptor_distance(np.array([0.0, 0.0]), np.array([3.0, 4.0])) == pytest.approx(5.0)


def test_descriptor_distance_rejects_length_mismatch():
    with pytest.raises(ClusteringInputError):
        descriptor_distance(np.zeros(2), np.zeros(3))


def test_find_similar_faces_sorted_by_distance():
    faces = faces_from([[0.5, 0.0], [0.1, 0.0], [2.0, 0.0], [0.3, 0.0]])
    similar = find_similar_faces(np.array([0.0, 0.0]), faces, threshold=0.6)
    assert [f.id for f in similar] == [2, 4, 1]


def test_average_descriptor():
    avg = average_descriptor([np.array([0.0, 2.0]), np.array([1.0, 4.0])])
    np.testing.assert_allclose(avg, [0.5, 3.0])


def test_empty_input_gives_no_clusters():
    assert cluster_faces([]) == []


def test_five_face_scenario():
    faces = faces_from([[0, 0], [0.05, 0], [5, 5], [5.05, 5], [10, 10]])
    clusters = cluster_faces(faces, threshold=0.6)
    assert [c.face_ids for c in clusters] == [[1, 2], [3, 4], [5]]
    assert sorted(len(c.faces) for c in clusters) == [1, 2, 2]
    np.testing.assert_allclose(clusters[0].average_descriptor, [0.025, 0.0], atol=1e-6)


def test_identical_pair_and_outlier():
    faces = faces_from([[0.2, 0.4], [0.2, 0.4], [3.0, 3.0]])
    clusters = cluster_faces(faces, threshold=0.6)
    assert len(clusters) == 2
    assert clusters[0].face_ids == [1, 2]
    assert clusters[1].face_ids == [3]


def test_singleton_still_forms_cluster():
    clusters = cluster_faces(faces_from([[1.0, 1.0]]))
    assert len(clusters) == 1
    assert clusters[0].sample_face_id == 1
    assert clusters[0].person_id is None


def test_every_face_in_exactly_one_cluster():
    rng = np.random.default_rng(7)
    faces = faces_from(rng.normal(scale=0.5, size=(60, 4)).tolist())
    clusters = cluster_faces(faces, threshold=0.6)
    ids = [face_id for c in clusters for face_id in c.face_ids]
    assert sorted(ids) == [f.id for f in faces]
    assert len(ids) == len(set(ids))


def test_deterministic_for_same_order():
    rng = np.random.default_rng(3)
    faces = faces_from(rng.normal(scale=0.4, size=(30, 3)).tolist())
    first = [c.face_ids for c in cluster_faces(faces)]
    second = [c.face_ids for c in cluster_faces(faces)]
    assert first == second


def test_result_depends_on_input_order():
    # B sits within threshold of both A and C, which are too far apart to share a cluster.
    a, b, c = [0.0, 0.0], [0.5, 0.0], [1.0, 0.0]
    forward = cluster_faces(faces_from([a, b, c]), threshold=0.6)
    assert [cl.face_ids for cl in forward] == [[1, 2], [3]]

    reordered = faces_from([c, b, a])
    backward = cluster_faces(reordered, threshold=0.6)
    assert [cl.face_ids for cl in backward] == [[1, 2], [3]]
    # c claimed b this time, so a is alone.
    assert backward[1].faces[0].descriptor.tolist() == a


def test_sample_face_is_seed_and_members_nearest_first():
    faces = faces_from([[0.0, 0.0], [0.4, 0.0], [0.1, 0.0]])
    cluster = cluster_faces(faces, threshold=0.6)[0]
    assert cluster.sample_face_id == 1
    assert cluster.face_ids == [1, 3, 2]


def test_cluster_reports_existing_person_without_changing_faces():
    faces = faces_from([[0, 0], [0.01, 0], [0.02, 0]], person_ids=[None, 4, 4])
    clusters = cluster_faces(faces)
    assert clusters[0].person_id == 4
    assert [f.person_id for f in faces] == [None, 4, 4]


def test_mismatched_descriptor_lengths_rejected():
    faces = faces_from([[0.0, 0.0], [0.0, 0.0, 0.0]])
    with pytest.raises(ClusteringInputError):
        cluster_faces(faces)


def test_non_positive_threshold_rejected():
    with pytest.raises(ValueError):
        cluster_faces(faces_from([[0.0, 0.0]]), threshold=0)
