import pytest

from torneos.services.score_validation import (
    validate_match_sets,
    validate_set,
    validate_set_list,
    validate_super_tiebreak,
)


@pytest.mark.parametrize("score", [(6, 0), (6, 4), (4, 6), (7, 5), (7, 6), (6, 7)])
def test_valid_sets(score):
    assert validate_set(*score, 1).valid


@pytest.mark.parametrize("score", [(6, 5), (5, 3), (7, 4), (8, 6), (6, 6), (-1, 6), (0, 0)])
def test_invalid_sets(score):
    result = validate_set(*score, 2)
    assert not result.valid
    assert result.error.startswith("Set 2")


@pytest.mark.parametrize("score", [(10, 0), (10, 8), (7, 10), (12, 10), (10, 12)])
def test_valid_super_tiebreaks(score):
    assert validate_super_tiebreak(*score).valid


@pytest.mark.parametrize("score", [(9, 7), (10, 9), (13, 10), (11, 8), (-2, 10)])
def test_invalid_super_tiebreaks(score):
    assert not validate_super_tiebreak(*score).valid


def test_straight_sets_win():
    assert validate_match_sets((6, 2), (6, 4)).valid


def test_third_set_must_be_empty_when_decided():
    result = validate_match_sets((6, 2), (6, 4), (6, 1))
    assert not result.valid
    assert "Set 3" in result.error


def test_third_set_required_when_split():
    result = validate_match_sets((6, 2), (4, 6))
    assert not result.valid
    assert "Set 3" in result.error


def test_missing_second_set():
    assert not validate_match_sets((6, 2), None).valid
    assert not validate_match_sets((6, 2), (None, 4)).valid


def test_super_tiebreak_only_when_allowed():
    sets = [[6, 2], [4, 6], [10, 7]]
    assert validate_set_list(sets, super_tiebreak_allowed=True).valid
    assert not validate_set_list(sets, super_tiebreak_allowed=False).valid


def test_regular_third_set_rejected_when_super_tiebreak_allowed():
    assert not validate_set_list([[6, 2], [4, 6], [6, 3]], super_tiebreak_allowed=True).valid


def test_regular_third_set_without_super_tiebreak():
    assert validate_set_list([[6, 2], [4, 6], [7, 5]], super_tiebreak_allowed=False).valid


@pytest.mark.parametrize("sets", [[], [[6, 2]], [[6, 2], [6, 4], [6, 1], [6, 0]], [[6, 2, 1], [6, 4]]])
def test_malformed_set_lists(sets):
    assert not validate_set_list(sets, super_tiebreak_allowed=False).valid
