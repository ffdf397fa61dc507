"""
Group formation: split registered teams into groups of 3 or 4 and build the
group-stage fixtures.

Sizes: floor(N / 3) groups (at least one). Remainder 1 -> first group has 4.
Remainder 2 -> first two groups have 4, or the lone group has 4 when there
is only one group (N=5 leaves one team out; reported, not corrected).

Fixtures:
- 3-team group: the three round-robin pairings, no match_order
- 4-team group: order1 = t0 vs t3, order2 = t1 vs t2,
  order3 = WINNER(order1) vs WINNER(order2),
  order4 = LOSER(order1) vs LOSER(order2)
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from torneos.errors import PreconditionError
from torneos.models.group import GroupTeam, TournamentGroup
from torneos.models.match import (
    MATCH_PENDING,
    MATCH_SCHEDULED,
    PHASE_GROUP,
    ROLE_LOSER,
    ROLE_WINNER,
    TournamentMatch,
)
from torneos.models.team import Team
from torneos.models.tournament import Tournament

logger = logging.getLogger(__name__)

MIN_TEAMS = 3

# (index of predecessor fixture within the group, role)
Predecessor = Tuple[int, str]


@dataclass
class PlannedFixture:
    team1_id: Optional[int]
    team2_id: Optional[int]
    match_order: Optional[int] = None
    source1: Optional[Predecessor] = None
    source2: Optional[Predecessor] = None

    @property
    def is_deferred(self) -> bool:
        return self.source1 is not None or self.source2 is not None


@dataclass
class PlannedGroup:
    group_order: int
    team_ids: List[int]
    fixtures: List[PlannedFixture] = field(default_factory=list)

    @property
    def name(self) -> str:
        return group_name(self.group_order)


@dataclass
class GroupPlan:
    groups: List[PlannedGroup]
    unassigned_team_ids: List[int] = field(default_factory=list)

    @property
    def fixture_count(self) -> int:
        return sum(len(g.fixtures) for g in self.groups)


def group_letter(group_order: int) -> str:
    return chr(ord("A") + group_order - 1)


def group_name(group_order: int) -> str:
    return f"Zona {group_letter(group_order)}"


def compute_group_sizes(team_count: int) -> List[int]:
    if team_count < MIN_TEAMS:
        raise PreconditionError(f"At least {MIN_TEAMS} teams are required to form groups (got {team_count})")
    base_groups = max(1, team_count // 3)
    remainder = team_count % 3
    sizes = [3] * base_groups
    if remainder == 1:
        sizes[0] = 4
    elif remainder == 2:
        if base_groups >= 2:
            sizes[0] = 4
            sizes[1] = 4
        else:
            sizes[0] = 4
    return sizes


def build_group_fixtures(team_ids: Sequence[int]) -> List[PlannedFixture]:
    if len(team_ids) == 3:
        t0, t1, t2 = team_ids
        return [
            PlannedFixture(t0, t1),
            PlannedFixture(t0, t2),
            PlannedFixture(t1, t2),
        ]
    if len(team_ids) == 4:
        t0, t1, t2, t3 = team_ids
        return [
            PlannedFixture(t0, t3, match_order=1),
            PlannedFixture(t1, t2, match_order=2),
            PlannedFixture(None, None, match_order=3, source1=(0, ROLE_WINNER), source2=(1, ROLE_WINNER)),
            PlannedFixture(None, None, match_order=4, source1=(0, ROLE_LOSER), source2=(1, ROLE_LOSER)),
        ]
    raise ValueError(f"Unsupported group size: {len(team_ids)}")


def plan_groups(team_ids: Sequence[int]) -> GroupPlan:
    """Pure: slice teams (input order, no shuffling) into groups with fixtures."""
    team_ids = list(team_ids)
    if len(set(team_ids)) != len(team_ids):
        raise PreconditionError("Duplicate team ids in registration list")
    sizes = compute_group_sizes(len(team_ids))

    groups: List[PlannedGroup] = []
    cursor = 0
    for index, size in enumerate(sizes):
        members = team_ids[cursor : cursor + size]
        cursor += size
        groups.append(PlannedGroup(group_order=index + 1, team_ids=members, fixtures=build_group_fixtures(members)))

    unassigned = team_ids[cursor:]
    if unassigned:
        logger.warning(
            "Group sizing left %d team(s) without a group (N=%d): %s",
            len(unassigned),
            len(team_ids),
            unassigned,
        )
    return GroupPlan(groups=groups, unassigned_team_ids=unassigned)


def registration_team_ids(session: Session, tournament_id: int) -> List[int]:
    """Non-substitute teams in registration order (display_order, then id)"""
    teams = session.exec(
        select(Team)
        .where(Team.tournament_id == tournament_id, Team.is_substitute == False)  # noqa: E712
        .order_by(Team.display_order, Team.id)
    ).all()
    return [t.id for t in teams]


def tournament_has_groups(session: Session, tournament_id: int) -> bool:
    existing = session.exec(select(TournamentGroup.id).where(TournamentGroup.tournament_id == tournament_id)).first()
    return existing is not None


def persist_group_plan(
    session: Session,
    tournament: Tournament,
    plan: GroupPlan,
) -> Dict[Tuple[int, int], TournamentMatch]:
    """Stage groups, memberships and fixtures on the session (caller commits).

    Returns the created matches keyed by (group_order, fixture_index).
    """
    if tournament_has_groups(session, tournament.id):
        raise PreconditionError("Groups already exist for this tournament")

    created: Dict[Tuple[int, int], TournamentMatch] = {}
    for planned in plan.groups:
        group = TournamentGroup(
            tournament_id=tournament.id,
            owner_id=tournament.owner_id,
            name=planned.name,
            group_order=planned.group_order,
        )
        session.add(group)
        session.flush()

        for position, team_id in enumerate(planned.team_ids, start=1):
            session.add(GroupTeam(group_id=group.id, team_id=team_id, position_in_group=position))

        for index, fixture in enumerate(planned.fixtures):
            match = TournamentMatch(
                tournament_id=tournament.id,
                owner_id=tournament.owner_id,
                phase=PHASE_GROUP,
                group_id=group.id,
                match_order=fixture.match_order,
                team1_id=fixture.team1_id,
                team2_id=fixture.team2_id,
                status=MATCH_PENDING if fixture.is_deferred else MATCH_SCHEDULED,
            )
            if fixture.source1 is not None:
                pred_index, role = fixture.source1
                match.source_match1_id = created[(planned.group_order, pred_index)].id
                match.source1_role = role
                match.source1_label = _source_label(role, planned.fixtures[pred_index])
            if fixture.source2 is not None:
                pred_index, role = fixture.source2
                match.source_match2_id = created[(planned.group_order, pred_index)].id
                match.source2_role = role
                match.source2_label = _source_label(role, planned.fixtures[pred_index])
            session.add(match)
            session.flush()
            created[(planned.group_order, index)] = match

    return created


def _source_label(role: str, predecessor: PlannedFixture) -> str:
    prefix = "Ganador" if role == ROLE_WINNER else "Perdedor"
    return f"{prefix} partido {predecessor.match_order}"
