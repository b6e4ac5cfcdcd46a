import math

import numpy as np
import pytest

from recognition.face_matcher import FaceMatcher, MatchResult, match_face


def vec(*values, size=4):
    out = np.zeros(size)
    out[:len(values)] = values
    return out


@pytest.fixture
def gallery():
    return {
        "alice": vec(0.0),
        "bob": vec(1.0, 1.0),
    }


def test_match_within_threshold(gallery):
    result = match_face(vec(0.5), gallery)
    assert result.student_id == "alice"
    assert result.distance == pytest.approx(0.5)
    assert result.is_known


def test_match_beyond_threshold_is_unknown(gallery):
    result = match_face(vec(0.0, 0.0, 0.7), gallery)
    assert result.student_id is None
    assert result.distance == pytest.approx(0.7)
    assert not result.is_known


def test_match_at_threshold_is_inclusive():
    result = match_face(vec(0.5), {"alice": vec(0.0)}, tolerance=0.5)
    assert result.student_id == "alice"


@pytest.mark.parametrize("distance,expected", [(0.1, "alice"), (0.59, "alice"), (0.6, "alice"), (0.61, None), (0.9, None)])
def test_threshold_property(distance, expected):
    assert match_face(vec(distance), {"alice": vec(0.0)}).student_id == expected


def test_empty_gallery_is_unknown():
    result = match_face(vec(0.0), {})
    assert result.student_id is None
    assert math.isinf(result.distance)
    assert result.confidence == 0.0


def test_multiple_encodings_keep_closest():
    gallery = {"alice": [vec(0.9), vec(0.1)], "bob": vec(0.3)}
    result = match_face(vec(0.0), gallery)
    assert result.student_id == "alice"
    assert result.distance == pytest.approx(0.1)


def test_tie_prefers_lexicographically_first():
    gallery = {"zed": vec(0.2), "amy": vec(-0.2)}
    assert match_face(vec(0.0), gallery).student_id == "amy"
    reordered = {"amy": vec(-0.2), "zed": vec(0.2)}
    assert match_face(vec(0.0), reordered).student_id == "amy"


def test_confidence_is_one_minus_distance():
    assert MatchResult("alice", 0.25).confidence == pytest.approx(0.75)


def test_face_matcher_add_match_remove():
    matcher = FaceMatcher(tolerance=0.6)
    matcher.add_face("alice", vec(0.0))
    matcher.add_face("alice", vec(2.0))

    assert len(matcher) == 1
    assert matcher.match(vec(1.9)).student_id == "alice"

    assert matcher.remove_face("alice")
    assert not matcher.remove_face("alice")
    assert matcher.match(vec(0.0)).student_id is None


def test_face_matcher_matches_each_face_independently():
    matcher = FaceMatcher(tolerance=0.6)
    matcher.add_face("alice", vec(0.0))
    matcher.add_face("bob", vec(5.0))

    results = matcher.match_many([vec(0.1), vec(5.1), vec(10.0)])
    assert [r.student_id for r in results] == ["alice", "bob", None]

    stats = matcher.get_recognition_statistics()
    assert stats['enrolled_students'] == 2
    assert stats['most_recognized'] == {"alice": 1, "bob": 1}


def test_update_tolerance_is_clamped():
    matcher = FaceMatcher(tolerance=0.6)
    matcher.update_tolerance(3.0)
    assert matcher.tolerance == 1.0
    matcher.update_tolerance(-1.0)
    assert matcher.tolerance == 0.0
