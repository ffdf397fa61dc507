"""
Score summaries for padel results.

Supports:
  [[6, 2], [6, 4]]          -> structured set pairs
  "6-2 4-6 10-7"            -> space-separated string
  "6-2, 4-6, 10-7"          -> comma-separated variant

Parsing does not judge legality; see score_validation for that.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


@dataclass
class ParsedScore:
    sets: List[Tuple[int, int]]  # (team1_games, team2_games) per set
    team1_sets_won: int
    team2_sets_won: int
    team1_games: int
    team2_games: int

    @property
    def winner_side(self) -> Optional[int]:
        """1 or 2, None when sets are level"""
        if self.team1_sets_won > self.team2_sets_won:
            return 1
        if self.team2_sets_won > self.team1_sets_won:
            return 2
        return None


def summarize_sets(sets: Sequence[Sequence[int]]) -> ParsedScore:
    """Sets won per side and total games per side over the played sets."""
    pairs: List[Tuple[int, int]] = [(int(a), int(b)) for a, b in sets]
    return ParsedScore(
        sets=pairs,
        team1_sets_won=sum(1 for a, b in pairs if a > b),
        team2_sets_won=sum(1 for a, b in pairs if b > a),
        team1_games=sum(a for a, _ in pairs),
        team2_games=sum(b for _, b in pairs),
    )


def parse_score_string(raw: Optional[str]) -> Optional[List[Tuple[int, int]]]:
    """Parse strings like '6-2 6-4' or '6-3, 4-6, 10-7'. Returns None on failure."""
    if not raw or not raw.strip():
        return None
    # Normalize: replace commas with spaces, collapse whitespace
    parts = raw.replace(",", " ").split()

    sets: List[Tuple[int, int]] = []
    for part in parts:
        pair = part.split("-")
        if len(pair) != 2:
            return None
        try:
            a = int(pair[0])
            b = int(pair[1])
        except ValueError:
            return None
        sets.append((a, b))

    return sets or None
