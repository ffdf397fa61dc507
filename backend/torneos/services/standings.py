"""
Group standings.

compute_group_standings() is a pure function of the group's membership and
its finished matches. Persisted standings are derived data: every
recomputation deletes the group's rows and inserts the fresh set in one
commit, so two runs over the same results produce identical rows.

Ranking: wins desc, then set difference desc, then game difference desc.
Remaining ties keep membership order (no head-to-head rule is applied).
"""
import logging
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from torneos.errors import PersistenceError
from torneos.models.group import GroupTeam, TournamentGroup
from torneos.models.match import MATCH_FINISHED, PHASE_GROUP, TournamentMatch
from torneos.models.standing import GroupStanding
from torneos.services.group_formation import group_letter

logger = logging.getLogger(__name__)


@dataclass
class StandingRow:
    team_id: int
    position: int = 0
    matches_played: int = 0
    wins: int = 0
    losses: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    games_won: int = 0
    games_lost: int = 0

    @property
    def set_diff(self) -> int:
        return self.sets_won - self.sets_lost

    @property
    def game_diff(self) -> int:
        return self.games_won - self.games_lost

    def to_dict(self) -> dict:
        data = asdict(self)
        data["set_diff"] = self.set_diff
        data["game_diff"] = self.game_diff
        return data


@dataclass
class Qualifier:
    team_id: Optional[int]  # None in placeholder previews
    group_id: Optional[int]
    group_order: int
    position: int

    @property
    def label(self) -> str:
        return f"{self.position}{group_letter(self.group_order)}"


def qualifiers_per_group(group_size: int) -> int:
    """Top 2 of a 3-team group, top 3 of a 4-team group"""
    return 3 if group_size >= 4 else 2


def ranking_key(row: StandingRow):
    return (-row.wins, -row.set_diff, -row.game_diff)


def compute_group_standings(team_ids: Sequence[int], matches: Iterable[TournamentMatch]) -> List[StandingRow]:
    """Aggregate finished matches into ranked rows, one per member team."""
    rows: Dict[int, StandingRow] = {team_id: StandingRow(team_id=team_id) for team_id in team_ids}

    for match in matches:
        if match.status != MATCH_FINISHED:
            continue
        if match.team1_id not in rows or match.team2_id not in rows:
            continue
        one = rows[match.team1_id]
        two = rows[match.team2_id]
        one.matches_played += 1
        two.matches_played += 1

        one.sets_won += match.team1_sets
        one.sets_lost += match.team2_sets
        two.sets_won += match.team2_sets
        two.sets_lost += match.team1_sets
        one.games_won += match.team1_games_total
        one.games_lost += match.team2_games_total
        two.games_won += match.team2_games_total
        two.games_lost += match.team1_games_total

        winner_id = match.winner_team_id
        if winner_id is None and match.team1_sets != match.team2_sets:
            winner_id = match.team1_id if match.team1_sets > match.team2_sets else match.team2_id
        if winner_id == match.team1_id:
            one.wins += 1
            two.losses += 1
        elif winner_id == match.team2_id:
            two.wins += 1
            one.losses += 1

    # sorted() is stable: residual ties stay in membership order
    ranked = sorted((rows[t] for t in team_ids), key=ranking_key)
    for position, row in enumerate(ranked, start=1):
        row.position = position
    return ranked


def select_qualifiers(group: TournamentGroup, rows: Sequence[StandingRow]) -> List[Qualifier]:
    count = qualifiers_per_group(len(rows))
    return [
        Qualifier(team_id=row.team_id, group_id=group.id, group_order=group.group_order, position=row.position)
        for row in rows[:count]
    ]


def placeholder_qualifiers(group: TournamentGroup, group_size: int) -> List[Qualifier]:
    """Qualifier slots for a group whose results are not final yet"""
    return [
        Qualifier(team_id=None, group_id=group.id, group_order=group.group_order, position=position)
        for position in range(1, qualifiers_per_group(group_size) + 1)
    ]


def group_member_ids(session: Session, group_id: int) -> List[int]:
    members = session.exec(
        select(GroupTeam).where(GroupTeam.group_id == group_id).order_by(GroupTeam.position_in_group, GroupTeam.id)
    ).all()
    return [m.team_id for m in members]


def group_matches(session: Session, group_id: int) -> List[TournamentMatch]:
    return list(
        session.exec(
            select(TournamentMatch)
            .where(TournamentMatch.group_id == group_id, TournamentMatch.phase == PHASE_GROUP)
            .order_by(TournamentMatch.id)
        ).all()
    )


def compute_standings_for_group(session: Session, group_id: int) -> List[StandingRow]:
    """Read-only: rows for one group from the stored results"""
    return compute_group_standings(group_member_ids(session, group_id), group_matches(session, group_id))


def stage_standings_replace(session: Session, group_id: int, rows: Sequence[StandingRow]) -> None:
    """Delete-then-insert on the session; the caller owns the commit."""
    session.execute(delete(GroupStanding).where(GroupStanding.group_id == group_id))
    for row in rows:
        session.add(
            GroupStanding(
                group_id=group_id,
                team_id=row.team_id,
                position=row.position,
                matches_played=row.matches_played,
                wins=row.wins,
                losses=row.losses,
                sets_won=row.sets_won,
                sets_lost=row.sets_lost,
                games_won=row.games_won,
                games_lost=row.games_lost,
            )
        )


def recompute_group_standings(session: Session, group_ids: Sequence[int]) -> Dict[int, List[StandingRow]]:
    """Recompute and atomically replace standings for the given groups."""
    results: Dict[int, List[StandingRow]] = {}
    try:
        for group_id in group_ids:
            rows = compute_standings_for_group(session, group_id)
            stage_standings_replace(session, group_id, rows)
            results[group_id] = rows
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to replace standings for groups %s", list(group_ids))
        raise PersistenceError(f"Could not save standings: {exc}") from exc
    return results


def stored_standings(session: Session, group_id: int) -> List[GroupStanding]:
    return list(
        session.exec(
            select(GroupStanding).where(GroupStanding.group_id == group_id).order_by(GroupStanding.position)
        ).all()
    )
