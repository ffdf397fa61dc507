"""
Set-score legality for padel matches (best of 3 sets).

Normal set: winner reaches 6 with a 2+ game lead (6-0 .. 6-4), or 7-5 / 7-6.
Super tiebreak (third set only, when allowed): first to 10 points, win by 2.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

SetPair = Optional[Tuple[Optional[int], Optional[int]]]


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None


_OK = ValidationResult(True)


def _is_empty(pair: SetPair) -> bool:
    return pair is None or (pair[0] is None and pair[1] is None)


def _is_complete(pair: SetPair) -> bool:
    return pair is not None and pair[0] is not None and pair[1] is not None


def validate_set(team1: int, team2: int, set_number: int) -> ValidationResult:
    if team1 < 0 or team2 < 0:
        return ValidationResult(False, f"Set {set_number}: games cannot be negative")
    if team1 == team2:
        return ValidationResult(False, f"Set {set_number}: a set cannot end tied ({team1}-{team2})")
    winner, loser = max(team1, team2), min(team1, team2)
    if winner == 6 and loser <= 4:
        return _OK
    if winner == 7 and loser in (5, 6):
        return _OK
    return ValidationResult(False, f"Set {set_number}: {team1}-{team2} is not a valid set score")


def validate_super_tiebreak(team1: int, team2: int) -> ValidationResult:
    if team1 < 0 or team2 < 0:
        return ValidationResult(False, "Super tiebreak: points cannot be negative")
    winner, loser = max(team1, team2), min(team1, team2)
    if winner < 10:
        return ValidationResult(False, f"Super tiebreak: {team1}-{team2}, winner must reach 10 points")
    if winner - loser < 2:
        return ValidationResult(False, f"Super tiebreak: {team1}-{team2}, must be won by 2 points")
    if winner > 10 and winner - loser != 2:
        return ValidationResult(False, f"Super tiebreak: {team1}-{team2} is not a valid final score")
    return _OK


def validate_match_sets(
    set1: SetPair,
    set2: SetPair,
    set3: SetPair = None,
    super_tiebreak_allowed: bool = False,
) -> ValidationResult:
    """Pure check of a full match result. Returns the first problem found."""
    if not _is_complete(set1):
        return ValidationResult(False, "Set 1 is required")
    if not _is_complete(set2):
        return ValidationResult(False, "Set 2 is required")

    for number, pair in ((1, set1), (2, set2)):
        result = validate_set(pair[0], pair[1], number)
        if not result.valid:
            return result

    first_two = [1 if pair[0] > pair[1] else 2 for pair in (set1, set2)]
    decided = first_two[0] == first_two[1]

    if decided:
        if not _is_empty(set3):
            return ValidationResult(False, "Set 3 must be empty when a team won the first two sets")
        return _OK

    if not _is_complete(set3):
        return ValidationResult(False, "Set 3 is required when the first two sets are split")
    if super_tiebreak_allowed:
        return validate_super_tiebreak(set3[0], set3[1])
    return validate_set(set3[0], set3[1], 3)


def validate_set_list(sets: Sequence[Sequence[int]], super_tiebreak_allowed: bool) -> ValidationResult:
    """Convenience wrapper for 1..3 ordered [team1, team2] pairs"""
    if not sets:
        return ValidationResult(False, "Set 1 is required")
    if len(sets) > 3:
        return ValidationResult(False, "A match has at most 3 sets")
    for pair in sets:
        if len(pair) != 2:
            return ValidationResult(False, "Each set must have exactly two scores")
    padded = [tuple(pair) for pair in sets] + [None] * (3 - len(sets))
    return validate_match_sets(padded[0], padded[1], padded[2], super_tiebreak_allowed)
