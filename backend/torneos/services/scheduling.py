"""
Scheduling glue between stored matches and the pure assigner.

Builds FixtureRequests from matches (resolved teams, or a winner/loser stand-in
for each slot still waiting on its source), loads team restrictions, turns already
scheduled matches into fixed occupants, and writes assignments back.
"""
import logging
from collections import defaultdict
from typing import Dict, FrozenSet, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlmodel import Session, select

from torneos.models.match import PHASE_GROUP, TournamentMatch
from torneos.models.restriction import TeamScheduleRestriction
from torneos.models.team import Team
from torneos.services.bracket import round_index
from torneos.utils.auto_assign import FixedOccupancy, FixtureRequest, RestrictionWindow
from torneos.utils.time_slots import CandidateSlot, end_to_minutes, time_to_minutes

logger = logging.getLogger(__name__)


def load_restrictions(session: Session, tournament_id: int) -> Dict[Hashable, List[RestrictionWindow]]:
    rows = session.exec(
        select(TeamScheduleRestriction)
        .join(Team, Team.id == TeamScheduleRestriction.team_id)
        .where(Team.tournament_id == tournament_id)
        .order_by(TeamScheduleRestriction.id)
    ).all()
    restrictions: Dict[Hashable, List[RestrictionWindow]] = defaultdict(list)
    for row in rows:
        restrictions[row.team_id].append(RestrictionWindow.from_times(row.day_date, row.start_time, row.end_time))
    return dict(restrictions)


def match_slot(match: TournamentMatch) -> Optional[CandidateSlot]:
    if match.match_date is None or match.start_time is None or match.end_time is None or match.court_id is None:
        return None
    return CandidateSlot(
        match_date=match.match_date,
        start_minute=time_to_minutes(match.start_time),
        end_minute=end_to_minutes(match.end_time),
        court_id=match.court_id,
    )


def source_stand_in(source_key: Hashable, role: Optional[str]) -> Tuple[Hashable, Optional[str]]:
    """Participant placeholder for "the winner (or loser) of source_key"."""
    return (source_key, role)


def potential_participants(match: TournamentMatch) -> FrozenSet[Hashable]:
    """Teams of this match, with a role stand-in for each slot still waiting on its source.

    A stand-in only collides with the same role of the same source; ordering
    against the source itself comes from the ``after`` edge.
    """
    participants = set()
    slots = (
        (match.team1_id, match.source_match1_id, match.source1_role),
        (match.team2_id, match.source_match2_id, match.source2_role),
    )
    for team_id, source_id, role in slots:
        if team_id is not None:
            participants.add(team_id)
        elif source_id is not None:
            participants.add(source_stand_in(source_id, role))
    return frozenset(participants)


def reachable_teams(match: TournamentMatch, by_id: Mapping[int, TournamentMatch]) -> FrozenSet[int]:
    """Every team that is, or may still become, a player of this match"""
    teams = set()
    for team_id, source_id in ((match.team1_id, match.source_match1_id), (match.team2_id, match.source_match2_id)):
        if team_id is not None:
            teams.add(team_id)
        elif source_id is not None and source_id in by_id:
            teams |= reachable_teams(by_id[source_id], by_id)
    return frozenset(teams)


def stand_in_teams(
    matches: Iterable[TournamentMatch], by_id: Mapping[int, TournamentMatch]
) -> Dict[Hashable, FrozenSet[int]]:
    stand_ins: Dict[Hashable, FrozenSet[int]] = {}
    for match in matches:
        for team_id, source_id, role in (
            (match.team1_id, match.source_match1_id, match.source1_role),
            (match.team2_id, match.source_match2_id, match.source2_role),
        ):
            if team_id is None and source_id in by_id:
                stand_ins[source_stand_in(source_id, role)] = reachable_teams(by_id[source_id], by_id)
    return stand_ins


def with_stand_in_restrictions(
    restrictions: Mapping[Hashable, Sequence[RestrictionWindow]],
    stand_ins: Mapping[Hashable, Iterable[Hashable]],
) -> Dict[Hashable, List[RestrictionWindow]]:
    """A stand-in is blocked wherever any team that could fill it is blocked"""
    expanded: Dict[Hashable, List[RestrictionWindow]] = {k: list(v) for k, v in restrictions.items()}
    for stand_in, team_ids in stand_ins.items():
        windows = [window for team_id in team_ids for window in restrictions.get(team_id, ())]
        if windows:
            expanded[stand_in] = windows
    return expanded


def match_schedule_key(match: TournamentMatch, group_order: Mapping[int, int]):
    """Caller priority: group phase first (immediate before deferred), then playoff rounds in order"""
    if match.phase == PHASE_GROUP:
        deferred = 1 if match.source_match1_id or match.source_match2_id else 0
        return (0, deferred, group_order.get(match.group_id, 0), match.match_order or 0, match.id or 0)
    return (1, round_index(match.round), match.bracket_pos or 0, 0, match.id or 0)


def fixture_requests(matches: Sequence[TournamentMatch]) -> List[FixtureRequest]:
    requests = []
    for match in matches:
        after = tuple(s for s in (match.source_match1_id, match.source_match2_id) if s is not None)
        requests.append(
            FixtureRequest(key=match.id, participants=potential_participants(match), after=after)
        )
    return requests


def fixed_occupants(matches: Iterable[TournamentMatch]) -> List[FixedOccupancy]:
    occupants = []
    for match in matches:
        slot = match_slot(match)
        if slot is None:
            continue
        occupants.append(FixedOccupancy(key=match.id, participants=potential_participants(match), slot=slot))
    return occupants


def apply_slot(match: TournamentMatch, slot: CandidateSlot) -> None:
    match.match_date = slot.match_date
    match.start_time = slot.start_time
    match.end_time = slot.end_time
    match.court_id = slot.court_id


def schedule_rows(matches: Iterable[TournamentMatch]) -> List[dict]:
    rows = []
    for match in matches:
        slot = match_slot(match)
        rows.append(
            {
                "match_id": match.id,
                "phase": match.phase,
                "group_id": match.group_id,
                "round": match.round,
                "bracket_pos": match.bracket_pos,
                "slot": slot.to_dict() if slot else None,
            }
        )
    return rows
