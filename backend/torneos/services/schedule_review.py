"""
Schedule review edits. Only allowed while the tournament is in schedule_review.

- swap_teams: two teams trade places. Group membership and every group fixture
  follow; slots stay where they are.
- swap_group_schedules: two groups of equal size trade the date/time/court of
  their fixtures, paired by match_order then id.
- update_match_schedule: set or clear one match's slot by hand.

Each edit holds the tournament lock and commits once.
"""
import logging
from datetime import date, time
from typing import Any, Dict, List, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from torneos.context import OwnerContext
from torneos.errors import (
    NotFoundError,
    PersistenceError,
    PreconditionError,
    ScheduleConflictError,
    ValidationError,
)
from torneos.models.group import GroupTeam, TournamentGroup
from torneos.models.match import PHASE_GROUP, TournamentMatch
from torneos.models.tournament import STATUS_SCHEDULE_REVIEW, Tournament
from torneos.services.access import get_owned_match, get_owned_tournament
from torneos.services.scheduling import apply_slot, match_slot, potential_participants, schedule_rows
from torneos.services.standings import group_member_ids
from torneos.services.tournament_lock import tournament_lock
from torneos.utils.time_slots import CandidateSlot, end_to_minutes, time_to_minutes

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ("match_date", "start_time", "end_time", "court_id")


def _require_review(tournament: Tournament) -> None:
    if tournament.status != STATUS_SCHEDULE_REVIEW:
        raise PreconditionError(f"Only allowed during schedule review (status: {tournament.status})")


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Commit failed while trying to %s", action)
        raise PersistenceError(f"Could not {action}: {exc}") from exc


def _tournament_group(session: Session, tournament: Tournament, group_id: int) -> TournamentGroup:
    group = session.get(TournamentGroup, group_id)
    if not group or group.tournament_id != tournament.id:
        raise NotFoundError(f"Group {group_id} not found in this tournament")
    return group


def _membership(session: Session, group_id: int, team_id: int) -> GroupTeam:
    row = session.exec(select(GroupTeam).where(GroupTeam.group_id == group_id, GroupTeam.team_id == team_id)).first()
    if row is None:
        raise ValidationError(f"Team {team_id} is not in group {group_id}")
    return row


def _group_fixtures(session: Session, group_id: int) -> List[TournamentMatch]:
    return list(
        session.exec(
            select(TournamentMatch)
            .where(TournamentMatch.group_id == group_id, TournamentMatch.phase == PHASE_GROUP)
            .order_by(TournamentMatch.match_order, TournamentMatch.id)
        ).all()
    )


def swap_teams(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    team1_id: int,
    group1_id: int,
    team2_id: int,
    group2_id: int,
) -> Dict[str, Any]:
    if team1_id == team2_id:
        raise ValidationError("Cannot swap a team with itself")
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        _require_review(tournament)
        group1 = _tournament_group(session, tournament, group1_id)
        group2 = _tournament_group(session, tournament, group2_id)
        row1 = _membership(session, group1.id, team1_id)
        row2 = _membership(session, group2.id, team2_id)

        # Each team takes over the other's group and position
        row1.group_id, row2.group_id = row2.group_id, row1.group_id
        row1.position_in_group, row2.position_in_group = row2.position_in_group, row1.position_in_group
        session.add(row1)
        session.add(row2)

        swap = {team1_id: team2_id, team2_id: team1_id}
        fixtures = _group_fixtures(session, group1.id)
        if group2.id != group1.id:
            fixtures += _group_fixtures(session, group2.id)
        updated = 0
        for match in fixtures:
            new_team1 = swap.get(match.team1_id, match.team1_id)
            new_team2 = swap.get(match.team2_id, match.team2_id)
            if (new_team1, new_team2) != (match.team1_id, match.team2_id):
                match.team1_id, match.team2_id = new_team1, new_team2
                session.add(match)
                updated += 1
        _commit(session, "swap teams")

        logger.info(
            "Tournament %s: team %s (group %s) swapped with team %s (group %s), %d fixtures updated",
            tournament.id,
            team1_id,
            group1.id,
            team2_id,
            group2.id,
            updated,
        )
        return {
            "tournament_id": tournament.id,
            "matches_updated": updated,
            "groups": [
                {"id": g.id, "name": g.name, "team_ids": group_member_ids(session, g.id)}
                for g in ((group1,) if group1.id == group2.id else (group1, group2))
            ],
        }


def swap_group_schedules(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    group1_id: int,
    group2_id: int,
) -> Dict[str, Any]:
    if group1_id == group2_id:
        raise ValidationError("Pick two different groups")
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        _require_review(tournament)
        group1 = _tournament_group(session, tournament, group1_id)
        group2 = _tournament_group(session, tournament, group2_id)
        if len(group_member_ids(session, group1.id)) != len(group_member_ids(session, group2.id)):
            raise PreconditionError("Both groups must have the same number of teams")
        fixtures1 = _group_fixtures(session, group1.id)
        fixtures2 = _group_fixtures(session, group2.id)
        if len(fixtures1) != len(fixtures2):
            raise PreconditionError("Both groups must have the same number of matches")

        for first, second in zip(fixtures1, fixtures2):
            first_slot = tuple(getattr(first, f) for f in SCHEDULE_FIELDS)
            second_slot = tuple(getattr(second, f) for f in SCHEDULE_FIELDS)
            for name, value in zip(SCHEDULE_FIELDS, second_slot):
                setattr(first, name, value)
            for name, value in zip(SCHEDULE_FIELDS, first_slot):
                setattr(second, name, value)
            session.add(first)
            session.add(second)
        _commit(session, "swap group schedules")

        logger.info("Tournament %s: schedules of %s and %s swapped", tournament.id, group1.name, group2.name)
        return {
            "tournament_id": tournament.id,
            "swapped": len(fixtures1),
            "schedule": schedule_rows(fixtures1 + fixtures2),
        }


def _check_manual_slot(session: Session, match: TournamentMatch, slot: CandidateSlot) -> None:
    others = session.exec(
        select(TournamentMatch).where(
            TournamentMatch.tournament_id == match.tournament_id,
            TournamentMatch.id != match.id,
        )
    ).all()
    participants = potential_participants(match)
    sources = {match.source_match1_id, match.source_match2_id} - {None}
    start = (slot.match_date, slot.start_minute)
    end = (slot.match_date, slot.end_minute)
    for other in others:
        other_slot = match_slot(other)
        if other_slot is None:
            continue
        if other_slot.overlaps(slot) and other_slot.court_id == slot.court_id:
            raise ScheduleConflictError(f"Court {slot.court_id} is already used by match {other.id} at that time")
        if other_slot.overlaps(slot) and participants & potential_participants(other):
            raise ScheduleConflictError(f"A team of this match already plays match {other.id} at that time")
        if other.id in sources and start < (other_slot.match_date, other_slot.end_minute):
            raise ScheduleConflictError(f"Match {other.id} feeds this one and ends after the new start")
        feeds_other = match.id in (other.source_match1_id, other.source_match2_id)
        if feeds_other and (other_slot.match_date, other_slot.start_minute) < end:
            raise ScheduleConflictError(f"Match {other.id} depends on this one and starts before the new end")


def update_match_schedule(
    session: Session,
    owner: OwnerContext,
    match_id: int,
    changes: Mapping[str, Any],
) -> TournamentMatch:
    """Apply a partial slot change. All four fields end up set, or all cleared."""
    unknown = set(changes) - set(SCHEDULE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown schedule fields: {sorted(unknown)}")
    match = get_owned_match(session, owner, match_id)
    with tournament_lock(match.tournament_id):
        session.refresh(match)
        tournament = session.get(Tournament, match.tournament_id)
        session.refresh(tournament)
        _require_review(tournament)

        values = {name: changes.get(name, getattr(match, name)) for name in SCHEDULE_FIELDS}
        if all(v is None for v in values.values()):
            match.clear_schedule()
        else:
            if any(v is None for v in values.values()):
                raise ValidationError("match_date, start_time, end_time and court_id must be set together")
            slot = _slot_from_values(values["match_date"], values["start_time"], values["end_time"], values["court_id"])
            _check_manual_slot(session, match, slot)
            apply_slot(match, slot)
        session.add(match)
        _commit(session, "update match schedule")
        session.refresh(match)
        logger.info("Match %s rescheduled by hand: %s", match.id, schedule_rows([match])[0]["slot"])
        return match


def _slot_from_values(match_date: date, start: time, end: time, court_id: int) -> CandidateSlot:
    start_minute = time_to_minutes(start)
    end_minute = end_to_minutes(end)
    if end_minute <= start_minute:
        raise ValidationError("end_time must be after start_time")
    return CandidateSlot(match_date=match_date, start_minute=start_minute, end_minute=end_minute, court_id=court_id)
