"""
Playoff bracket generation.

Seeding:
- Global ranking: every group winner (Zona A -> Z), then every runner-up
  in reverse group order (Z -> A), then every third place (A -> Z).
- Bracket size B is the next power of two >= qualifier count; ranks are laid
  on the standard seed order (1 v B, B/2 v B/2+1, ...), so the B - n byes
  fall to the best-ranked teams.
- A bye places its team straight into the second round; no bye match is stored.
- First-round pairs from the same group are repaired by swapping the weaker
  sides of two matches when that clears both; otherwise it is logged.

Every match after the first round is fed by explicit (round, bracket_pos)
edges. bracket_pos is contiguous 1..K within each round.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Hashable, List, Optional, Sequence, Tuple, Union

from sqlmodel import Session, select

from torneos.errors import PreconditionError
from torneos.models.match import (
    MATCH_PENDING,
    MATCH_SCHEDULED,
    PHASE_PLAYOFF,
    ROLE_WINNER,
    TournamentMatch,
)
from torneos.models.tournament import Tournament
from torneos.services.standings import Qualifier

logger = logging.getLogger(__name__)

# Fixed forward vocabulary; playoff rounds only ever move right
ROUND_SEQUENCE = ["16avos", "octavos", "cuartos", "semifinal", "final"]
ROUND_BY_ENTRANTS = {32: "16avos", 16: "octavos", 8: "cuartos", 4: "semifinal", 2: "final"}
NEXT_ROUND: Dict[str, Optional[str]] = {
    "16avos": "octavos",
    "octavos": "cuartos",
    "cuartos": "semifinal",
    "semifinal": "final",
    "final": None,
}
# Late rounds always play a full third set
NO_SUPER_TIEBREAK_ROUNDS = frozenset({"cuartos", "semifinal", "final"})

MAX_QUALIFIERS = 32

MatchRef = Tuple[str, int]  # (round, bracket_pos)


def next_round(round_name: str) -> Optional[str]:
    if round_name not in NEXT_ROUND:
        raise ValueError(f"Unknown playoff round: {round_name}")
    return NEXT_ROUND[round_name]


def round_index(round_name: str) -> int:
    return ROUND_SEQUENCE.index(round_name)


def winner_label(round_name: str, bracket_pos: int) -> str:
    """Display label for the winner of a playoff match, e.g. 'Ganador Cuartos2'"""
    return f"Ganador {round_name.capitalize()}{bracket_pos}"


def bracket_size(qualifier_count: int) -> int:
    size = 2
    while size < qualifier_count:
        size *= 2
    return size


def seed_order(size: int) -> List[int]:
    """Standard seed placement: [1, 8, 4, 5, 2, 7, 3, 6] for size 8"""
    order = [1]
    while len(order) < size:
        width = len(order) * 2
        order = [s for seed in order for s in (seed, width + 1 - seed)]
    return order


def rank_qualifiers(qualifiers: Sequence[Qualifier]) -> List[Qualifier]:
    """Global seeding order used to lay teams onto the bracket"""
    by_position: Dict[int, List[Qualifier]] = {}
    for q in qualifiers:
        by_position.setdefault(q.position, []).append(q)

    ranked: List[Qualifier] = []
    for position in sorted(by_position):
        tier = sorted(by_position[position], key=lambda q: q.group_order)
        if position == 2:
            tier.reverse()
        ranked.extend(tier)
    return ranked


@dataclass
class Entrant:
    """A resolved or symbolic occupant of a bracket slot"""

    label: str
    team_id: Optional[int] = None
    group_order: Optional[int] = None
    source: Optional[MatchRef] = None  # set when the occupant is a match winner

    @classmethod
    def from_qualifier(cls, q: Qualifier) -> "Entrant":
        return cls(label=q.label, team_id=q.team_id, group_order=q.group_order)

    @classmethod
    def winner_of(cls, ref: MatchRef) -> "Entrant":
        return cls(label=winner_label(*ref), source=ref)

    @property
    def participant_key(self) -> Hashable:
        return self.team_id if self.team_id is not None else self.label


@dataclass
class PlannedPlayoffMatch:
    round: str
    bracket_pos: int
    slot1: Entrant
    slot2: Entrant
    # Every qualifier that could still reach this match (scheduling conflicts)
    potential: FrozenSet[Hashable] = frozenset()

    @property
    def ref(self) -> MatchRef:
        return (self.round, self.bracket_pos)

    @property
    def predecessors(self) -> Tuple[MatchRef, ...]:
        return tuple(s.source for s in (self.slot1, self.slot2) if s.source is not None)

    @property
    def status(self) -> str:
        if self.slot1.team_id is not None and self.slot2.team_id is not None:
            return MATCH_SCHEDULED
        return MATCH_PENDING

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "bracket_pos": self.bracket_pos,
            "team1_id": self.slot1.team_id,
            "team2_id": self.slot2.team_id,
            "source_team1": self.slot1.label,
            "source_team2": self.slot2.label,
            "status": self.status,
        }


@dataclass
class BracketPlan:
    size: int
    rounds: List[str]
    matches: List[PlannedPlayoffMatch] = field(default_factory=list)
    byes: List[Entrant] = field(default_factory=list)
    unresolved_conflicts: List[MatchRef] = field(default_factory=list)

    def matches_in_round(self, round_name: str) -> List[PlannedPlayoffMatch]:
        return [m for m in self.matches if m.round == round_name]

    def to_dict(self) -> dict:
        return {
            "bracket_size": self.size,
            "rounds": self.rounds,
            "byes": [b.label for b in self.byes],
            "matches": [m.to_dict() for m in self.matches],
            "unresolved_same_group_pairs": [f"{r}{p}" for r, p in self.unresolved_conflicts],
        }


def _same_group(a: Entrant, b: Entrant) -> bool:
    return a.group_order is not None and a.group_order == b.group_order


def avoid_same_group_pairs(pairs: List[List[Entrant]]) -> List[int]:
    """Swap weaker sides between first-round pairs to break same-group meetings.

    Mutates pairs in place; returns indices still in conflict.
    """
    for i, pair in enumerate(pairs):
        if not _same_group(pair[0], pair[1]):
            continue
        # Prefer the farthest pair so a swap disturbs the top of the draw least
        for j in reversed(range(len(pairs))):
            if j == i:
                continue
            other = pairs[j]
            if _same_group(pair[0], other[1]) or _same_group(other[0], pair[1]):
                continue
            pair[1], other[1] = other[1], pair[1]
            break
    return [i for i, pair in enumerate(pairs) if _same_group(pair[0], pair[1])]


def plan_bracket(qualifiers: Sequence[Qualifier]) -> BracketPlan:
    """Pure: build every round of the bracket from tagged qualifiers."""
    n = len(qualifiers)
    if n < 2:
        raise PreconditionError(f"At least 2 qualified teams are required for a playoff (got {n})")
    if n > MAX_QUALIFIERS:
        raise PreconditionError(f"At most {MAX_QUALIFIERS} qualified teams are supported (got {n})")

    ranked = [Entrant.from_qualifier(q) for q in rank_qualifiers(qualifiers)]
    size = bracket_size(n)
    first_round = ROUND_BY_ENTRANTS[size]
    rounds = ROUND_SEQUENCE[ROUND_SEQUENCE.index(first_round):]
    plan = BracketPlan(size=size, rounds=rounds)

    order = seed_order(size)
    lines: List[Union[Entrant, List[Entrant]]] = []
    real_pairs: List[List[Entrant]] = []
    for k in range(0, size, 2):
        high, low = order[k], order[k + 1]
        if low > n:
            # bye: seed `high` goes straight to the next round
            lines.append(ranked[high - 1])
            plan.byes.append(ranked[high - 1])
        else:
            pair = [ranked[high - 1], ranked[low - 1]]
            lines.append(pair)
            real_pairs.append(pair)

    for index in avoid_same_group_pairs(real_pairs):
        pair = real_pairs[index]
        logger.warning("Could not avoid same-group first-round pairing %s vs %s", pair[0].label, pair[1].label)

    # First round: only real matches, numbered in line order
    entries: List[Entrant] = []
    pos = 0
    for line in lines:
        if isinstance(line, Entrant):
            entries.append(line)
            continue
        pos += 1
        match = PlannedPlayoffMatch(
            round=first_round,
            bracket_pos=pos,
            slot1=line[0],
            slot2=line[1],
            potential=frozenset({line[0].participant_key, line[1].participant_key}),
        )
        plan.matches.append(match)
        if _same_group(line[0], line[1]):
            plan.unresolved_conflicts.append(match.ref)
        entries.append(Entrant.winner_of(match.ref))

    if first_round == "final":
        return plan

    potential_by_ref = {m.ref: m.potential for m in plan.matches}

    def _potential(entrant: Entrant) -> FrozenSet[Hashable]:
        if entrant.source is not None:
            return potential_by_ref[entrant.source]
        return frozenset({entrant.participant_key})

    current = next_round(first_round)
    while current is not None:
        next_entries: List[Entrant] = []
        for j in range(0, len(entries), 2):
            slot1, slot2 = entries[j], entries[j + 1]
            match = PlannedPlayoffMatch(
                round=current,
                bracket_pos=j // 2 + 1,
                slot1=slot1,
                slot2=slot2,
                potential=_potential(slot1) | _potential(slot2),
            )
            plan.matches.append(match)
            potential_by_ref[match.ref] = match.potential
            next_entries.append(Entrant.winner_of(match.ref))
        entries = next_entries
        current = next_round(current)

    return plan


def tournament_has_playoffs(session: Session, tournament_id: int) -> bool:
    existing = session.exec(
        select(TournamentMatch.id).where(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.phase == PHASE_PLAYOFF,
        )
    ).first()
    return existing is not None


def persist_bracket(session: Session, tournament: Tournament, plan: BracketPlan) -> Dict[MatchRef, TournamentMatch]:
    """Stage playoff matches on the session, wiring feeder edges (caller commits)."""
    if tournament_has_playoffs(session, tournament.id):
        raise PreconditionError("Playoff bracket already exists for this tournament")

    created: Dict[MatchRef, TournamentMatch] = {}
    for planned in plan.matches:
        match = TournamentMatch(
            tournament_id=tournament.id,
            owner_id=tournament.owner_id,
            phase=PHASE_PLAYOFF,
            round=planned.round,
            bracket_pos=planned.bracket_pos,
            team1_id=planned.slot1.team_id,
            team2_id=planned.slot2.team_id,
            source1_label=planned.slot1.label,
            source2_label=planned.slot2.label,
            status=planned.status,
        )
        if planned.slot1.source is not None:
            match.source_match1_id = created[planned.slot1.source].id
            match.source1_role = ROLE_WINNER
        if planned.slot2.source is not None:
            match.source_match2_id = created[planned.slot2.source].id
            match.source2_role = ROLE_WINNER
        session.add(match)
        session.flush()
        created[planned.ref] = match
    return created
