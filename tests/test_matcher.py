import math

import numpy as np
import pytest

from line_attendance.matcher import FaceMatcher, is_accepted
from line_attendance.models import UNKNOWN_LABEL, Gallery

from .conftest import make_gallery, make_operator


@pytest.mark.parametrize(
    "label,distance,threshold,expected",
    [
        ("a", 0.3, 0.6, True),
        ("a", 0.5999, 0.6, True),
        ("a", 0.6, 0.6, False),
        ("a", 0.61, 0.6, False),
        (UNKNOWN_LABEL, 0.1, 0.6, False),
        ("a", 0.0, 0.0, False),
        ("a", 0.9, 1.0, True),
    ],
)
def test_acceptance_rule(label, distance, threshold, expected):
    assert is_accepted(label, distance, threshold) is expected


def test_empty_gallery_is_always_unknown():
    matcher = FaceMatcher(Gallery())
    for probe in (np.zeros(4), np.ones(4), np.array([0.3, -2.0, 5.0, 1.0])):
        result = matcher.find_best_match(probe)
        assert result.label == UNKNOWN_LABEL
        assert math.isinf(result.distance)
        assert not result.is_match


def test_nearest_operator_under_threshold_is_matched():
    a, b = make_operator("a"), make_operator("b")
    matcher = FaceMatcher(make_gallery((a, [0.0, 0.0]), (b, [1.0, 0.0])))

    result = matcher.find_best_match(np.array([0.3, 0.0]))

    assert result.label == "a"
    assert result.distance == pytest.approx(0.3)


def test_nearest_over_threshold_is_rejected_but_distance_reported():
    matcher = FaceMatcher(make_gallery((make_operator("a"), [0.0, 0.0])))

    result = matcher.find_best_match(np.array([0.8, 0.0]))

    assert result.label == UNKNOWN_LABEL
    assert result.distance == pytest.approx(0.8)


def test_custom_threshold():
    matcher = FaceMatcher(make_gallery((make_operator("a"), [0.0, 0.0])), threshold=0.9)
    assert matcher.find_best_match(np.array([0.8, 0.0])).label == "a"


def test_tie_goes_to_first_inserted():
    a, b = make_operator("a"), make_operator("b")
    matcher = FaceMatcher(make_gallery((a, [0.2, 0.0]), (b, [-0.2, 0.0])))

    assert matcher.find_best_match(np.array([0.0, 0.0])).label == "a"

    reversed_matcher = FaceMatcher(make_gallery((b, [-0.2, 0.0]), (a, [0.2, 0.0])))
    assert reversed_matcher.find_best_match(np.array([0.0, 0.0])).label == "b"


def test_dimension_mismatch_raises():
    matcher = FaceMatcher(make_gallery((make_operator("a"), [0.0, 0.0])))
    with pytest.raises(ValueError):
        matcher.find_best_match(np.zeros(3))
