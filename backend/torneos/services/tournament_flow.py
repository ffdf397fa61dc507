"""
Tournament lifecycle operations.

draft --close_registration--> schedule_review --close_schedule_review--> in_progress
in_progress --reopen_schedule_review--> schedule_review (no group results yet)
in_progress --close_groups--> playoff bracket created; final result -> finished

Long operations are step generators (see services.progress): each yields
log/progress events and returns a JSON-friendly result. Every computation
(grouping, standings, bracket, slot assignment) runs in memory before the
first write, so validation, precondition and capacity failures leave the
tournament untouched. Mutating operations hold the tournament lock.
"""
import logging
from typing import Any, Dict, FrozenSet, Hashable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from torneos.context import OwnerContext
from torneos.errors import PersistenceError, PreconditionError, ValidationError
from torneos.models.group import TournamentGroup
from torneos.models.match import (
    MATCH_CANCELLED,
    MATCH_FINISHED,
    MATCH_IN_PROGRESS,
    PHASE_GROUP,
    PHASE_PLAYOFF,
    TournamentMatch,
)
from torneos.models.team import Team
from torneos.models.tournament import STATUS_DRAFT, STATUS_IN_PROGRESS, STATUS_SCHEDULE_REVIEW, Tournament
from torneos.services.access import get_owned_tournament
from torneos.services.bracket import (
    MAX_QUALIFIERS,
    BracketPlan,
    persist_bracket,
    plan_bracket,
    tournament_has_playoffs,
)
from torneos.services.group_formation import (
    GroupPlan,
    persist_group_plan,
    plan_groups,
    registration_team_ids,
    tournament_has_groups,
)
from torneos.services.progress import Steps, log_event, progress_event, run_to_completion
from torneos.services.scheduling import (
    apply_slot,
    fixed_occupants,
    fixture_requests,
    load_restrictions,
    match_schedule_key,
    schedule_rows,
    source_stand_in,
    stand_in_teams,
    with_stand_in_restrictions,
)
from torneos.services.standings import (
    Qualifier,
    StandingRow,
    compute_standings_for_group,
    group_member_ids,
    placeholder_qualifiers,
    qualifiers_per_group,
    select_qualifiers,
    stage_standings_replace,
)
from torneos.services.tournament_lock import tournament_lock
from torneos.utils.auto_assign import AssignResult, FixtureRequest, assign_fixtures
from torneos.utils.time_slots import ScheduleConfig, build_candidate_slots

logger = logging.getLogger(__name__)

SCHEDULE_PHASES = (PHASE_GROUP, PHASE_PLAYOFF)


def _commit(session: Session, action: str) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Commit failed while trying to %s", action)
        raise PersistenceError(f"Could not {action}: {exc}") from exc


def _tournament_groups(session: Session, tournament_id: int) -> List[TournamentGroup]:
    return list(
        session.exec(
            select(TournamentGroup)
            .where(TournamentGroup.tournament_id == tournament_id)
            .order_by(TournamentGroup.group_order)
        ).all()
    )


def _tournament_matches(session: Session, tournament_id: int, phase: Optional[str] = None) -> List[TournamentMatch]:
    query = select(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id)
    if phase is not None:
        query = query.where(TournamentMatch.phase == phase)
    return list(session.exec(query.order_by(TournamentMatch.id)).all())


# ---------------------------------------------------------------------------
# Close registration
# ---------------------------------------------------------------------------


def _validate_registration_ids(session: Session, tournament: Tournament, team_ids: Sequence[int]) -> None:
    teams = session.exec(select(Team).where(Team.tournament_id == tournament.id)).all()
    eligible = {t.id for t in teams if not t.is_substitute}
    unknown = [tid for tid in team_ids if tid not in eligible]
    if unknown:
        raise ValidationError(f"Teams not registered (or substitutes) in this tournament: {unknown}")


def _group_plan_requests(plan: GroupPlan) -> List[FixtureRequest]:
    """Immediate fixtures of every group first, then the deferred order3/order4"""
    immediate: List[FixtureRequest] = []
    deferred: List[FixtureRequest] = []
    for group in plan.groups:
        for index, fixture in enumerate(group.fixtures):
            key = (group.group_order, index)
            if fixture.is_deferred:
                sources = [src for src in (fixture.source1, fixture.source2) if src]
                after = tuple((group.group_order, pred_index) for pred_index, _ in sources)
                stand_ins = frozenset(
                    source_stand_in((group.group_order, pred_index), role) for pred_index, role in sources
                )
                deferred.append(FixtureRequest(key=key, participants=stand_ins, after=after))
            else:
                immediate.append(
                    FixtureRequest(key=key, participants=frozenset({fixture.team1_id, fixture.team2_id}))
                )
    return immediate + deferred


def _check_bracket_capacity(plan: GroupPlan) -> int:
    """Qualifier count the groups will produce; refused up front when no bracket could hold it"""
    total = sum(qualifiers_per_group(len(group.team_ids)) for group in plan.groups)
    if total > MAX_QUALIFIERS:
        raise PreconditionError(
            f"{len(plan.groups)} groups would send {total} teams to the playoffs; "
            f"at most {MAX_QUALIFIERS} are supported"
        )
    return total


def _group_plan_stand_ins(plan: GroupPlan) -> Dict[Hashable, FrozenSet[int]]:
    """Stand-in of each deferred slot -> the two teams of the opener that fills it"""
    stand_ins: Dict[Hashable, FrozenSet[int]] = {}
    for group in plan.groups:
        for fixture in group.fixtures:
            for source in (fixture.source1, fixture.source2):
                if source is None:
                    continue
                pred_index, role = source
                opener = group.fixtures[pred_index]
                stand_ins[source_stand_in((group.group_order, pred_index), role)] = frozenset(
                    {opener.team1_id, opener.team2_id}
                )
    return stand_ins


def close_registration_steps(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    team_ids: Optional[Sequence[int]] = None,
    schedule_config: Optional[ScheduleConfig] = None,
) -> Steps:
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        yield log_event(f"Closing registration for '{tournament.name}'")
        if tournament.status != STATUS_DRAFT:
            raise PreconditionError(f"Registration is already closed (status: {tournament.status})")
        if tournament_has_groups(session, tournament.id):
            raise PreconditionError("Groups already exist for this tournament")

        if team_ids is None:
            team_ids = registration_team_ids(session, tournament.id)
        else:
            team_ids = list(team_ids)
            _validate_registration_ids(session, tournament, team_ids)

        plan = plan_groups(team_ids)
        sizes = [len(g.team_ids) for g in plan.groups]
        yield log_event(f"{len(team_ids)} teams -> {len(plan.groups)} groups (sizes {sizes})")
        qualifier_total = _check_bracket_capacity(plan)
        yield log_event(f"{qualifier_total} teams will reach the playoffs")
        if plan.unassigned_team_ids:
            yield log_event(f"Warning: teams left without a group: {plan.unassigned_team_ids}")
        yield progress_event(25, "Groups planned")

        assignment: Optional[AssignResult] = None
        if schedule_config is not None:
            candidates = build_candidate_slots(schedule_config, tournament.match_duration)
            yield log_event(f"{len(candidates)} candidate slots for {plan.fixture_count} fixtures")
            placement_log: List[str] = []
            assignment = assign_fixtures(
                _group_plan_requests(plan),
                candidates,
                restrictions=with_stand_in_restrictions(
                    load_restrictions(session, tournament.id), _group_plan_stand_ins(plan)
                ),
                on_log=placement_log.append,
            )
            for message in placement_log:
                yield log_event(message)
            yield log_event(f"Assigned {assignment.assigned_count} fixtures")
        yield progress_event(60, "Schedule computed" if assignment is not None else "No schedule requested")

        created = persist_group_plan(session, tournament, plan)
        if assignment is not None:
            for key, slot in assignment.assignments.items():
                apply_slot(created[key], slot)
                session.add(created[key])
        tournament.status = STATUS_SCHEDULE_REVIEW
        session.add(tournament)
        _commit(session, "save groups and fixtures")
        yield progress_event(100, "Registration closed")

        logger.info(
            "Tournament %s: registration closed, %d groups, %d fixtures", tournament.id, len(plan.groups), len(created)
        )
        groups = _tournament_groups(session, tournament.id)
        return {
            "tournament_id": tournament.id,
            "status": tournament.status,
            "groups": [_group_summary(session, g) for g in groups],
            "matches_created": len(created),
            "scheduled": assignment is not None,
            "assigned_count": assignment.assigned_count if assignment else 0,
            "unassigned_team_ids": plan.unassigned_team_ids,
        }


def close_registration(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    team_ids: Optional[Sequence[int]] = None,
    schedule_config: Optional[ScheduleConfig] = None,
) -> Dict[str, Any]:
    return run_to_completion(close_registration_steps(session, owner, tournament_id, team_ids, schedule_config))


def _group_summary(session: Session, group: TournamentGroup) -> Dict[str, Any]:
    matches = session.exec(
        select(TournamentMatch).where(TournamentMatch.group_id == group.id).order_by(TournamentMatch.id)
    ).all()
    return {
        "id": group.id,
        "name": group.name,
        "group_order": group.group_order,
        "team_ids": group_member_ids(session, group.id),
        "match_ids": [m.id for m in matches],
    }


# ---------------------------------------------------------------------------
# Schedule review
# ---------------------------------------------------------------------------


def close_schedule_review(session: Session, owner: OwnerContext, tournament_id: int) -> Tournament:
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        if tournament.status != STATUS_SCHEDULE_REVIEW:
            raise PreconditionError(f"Tournament is not in schedule review (status: {tournament.status})")
        tournament.status = STATUS_IN_PROGRESS
        session.add(tournament)
        _commit(session, "start the tournament")
        session.refresh(tournament)
        logger.info("Tournament %s: schedule review closed, tournament in progress", tournament.id)
        return tournament


def reopen_schedule_review(session: Session, owner: OwnerContext, tournament_id: int) -> Tournament:
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        if tournament.status != STATUS_IN_PROGRESS:
            raise PreconditionError(f"Only an in-progress tournament can go back to review (status: {tournament.status})")
        if tournament_has_playoffs(session, tournament.id):
            raise PreconditionError("Playoffs already exist; schedule review cannot be reopened")
        started = [
            m
            for m in _tournament_matches(session, tournament.id, PHASE_GROUP)
            if m.status in (MATCH_IN_PROGRESS, MATCH_FINISHED) or m.set1_team1_games is not None
        ]
        if started:
            raise PreconditionError(f"{len(started)} group matches already have results or are being played")
        tournament.status = STATUS_SCHEDULE_REVIEW
        session.add(tournament)
        _commit(session, "reopen schedule review")
        session.refresh(tournament)
        return tournament


# ---------------------------------------------------------------------------
# Close groups / playoff preview
# ---------------------------------------------------------------------------


def _standings_and_qualifiers(session: Session, groups: Sequence[TournamentGroup]):
    standings: Dict[int, List[StandingRow]] = {}
    qualifiers: List[Qualifier] = []
    for group in groups:
        rows = compute_standings_for_group(session, group.id)
        standings[group.id] = rows
        qualifiers.extend(select_qualifiers(group, rows))
    return standings, qualifiers


def _unfinished_group_matches(matches: Sequence[TournamentMatch]) -> List[TournamentMatch]:
    return [m for m in matches if m.status not in (MATCH_FINISHED, MATCH_CANCELLED)]


def _bracket_requests(plan: BracketPlan) -> List[FixtureRequest]:
    return [FixtureRequest(key=m.ref, participants=m.potential, after=m.predecessors) for m in plan.matches]


def _schedule_bracket(
    session: Session,
    tournament: Tournament,
    plan: BracketPlan,
    schedule_config: ScheduleConfig,
) -> AssignResult:
    candidates = build_candidate_slots(schedule_config, tournament.match_duration)
    existing = _tournament_matches(session, tournament.id)
    return assign_fixtures(
        _bracket_requests(plan),
        candidates,
        restrictions=load_restrictions(session, tournament.id),
        fixed=fixed_occupants(existing),
    )


def close_groups_steps(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    schedule_config: Optional[ScheduleConfig] = None,
) -> Steps:
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        yield log_event("Checking group stage")
        if tournament.status != STATUS_IN_PROGRESS:
            raise PreconditionError(f"Tournament must be in progress to close groups (status: {tournament.status})")
        if tournament_has_playoffs(session, tournament.id):
            raise PreconditionError("Groups are already closed: a playoff bracket exists")
        groups = _tournament_groups(session, tournament.id)
        if not groups:
            raise PreconditionError("Tournament has no groups")
        pending = _unfinished_group_matches(_tournament_matches(session, tournament.id, PHASE_GROUP))
        if pending:
            raise PreconditionError(f"{len(pending)} group matches are not finished yet")

        standings, qualifiers = _standings_and_qualifiers(session, groups)
        yield log_event(f"{len(qualifiers)} teams qualified from {len(groups)} groups")
        yield progress_event(30, "Standings computed")

        plan = plan_bracket(qualifiers)
        yield log_event(f"Bracket of {plan.size}: rounds {', '.join(plan.rounds)}, {len(plan.byes)} byes")
        for ref in plan.unresolved_conflicts:
            yield log_event(f"Warning: same-group pairing kept in {ref[0]} {ref[1]}")
        yield progress_event(50, "Bracket generated")

        assignment: Optional[AssignResult] = None
        if schedule_config is not None:
            assignment = _schedule_bracket(session, tournament, plan, schedule_config)
            yield log_event(f"Assigned {assignment.assigned_count} playoff matches")
        yield progress_event(75, "Schedule computed" if assignment is not None else "No schedule requested")

        for group in groups:
            stage_standings_replace(session, group.id, standings[group.id])
        created = persist_bracket(session, tournament, plan)
        if assignment is not None:
            for ref, slot in assignment.assignments.items():
                apply_slot(created[ref], slot)
                session.add(created[ref])
        _commit(session, "save standings and playoff bracket")
        yield progress_event(100, "Groups closed")

        logger.info("Tournament %s: groups closed, %d playoff matches", tournament.id, len(created))
        return {
            "tournament_id": tournament.id,
            "standings": {
                str(group.id): [row.to_dict() for row in standings[group.id]] for group in groups
            },
            "qualifiers": [{"team_id": q.team_id, "label": q.label} for q in qualifiers],
            "bracket": _bracket_payload(plan, {ref: m.id for ref, m in created.items()}),
            "scheduled": assignment is not None,
            "assigned_count": assignment.assigned_count if assignment else 0,
        }


def close_groups(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    schedule_config: Optional[ScheduleConfig] = None,
) -> Dict[str, Any]:
    return run_to_completion(close_groups_steps(session, owner, tournament_id, schedule_config))


def _bracket_payload(plan: BracketPlan, ids: Optional[Dict[Any, int]] = None, slots=None) -> Dict[str, Any]:
    payload = plan.to_dict()
    for planned, row in zip(plan.matches, payload["matches"]):
        if ids is not None:
            row["match_id"] = ids.get(planned.ref)
        if slots is not None:
            slot = slots.get(planned.ref)
            row["slot"] = slot.to_dict() if slot else None
    return payload


def preview_bracket(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    schedule_config: Optional[ScheduleConfig] = None,
) -> Dict[str, Any]:
    """Bracket shape (and optional schedule) without writing anything.

    Placeholders ("1A", "2B") are used until every group match is finished.
    """
    tournament = get_owned_tournament(session, owner, tournament_id)
    groups = _tournament_groups(session, tournament.id)
    if not groups:
        raise PreconditionError("Tournament has no groups")

    pending = _unfinished_group_matches(_tournament_matches(session, tournament.id, PHASE_GROUP))
    if pending:
        qualifiers: List[Qualifier] = []
        for group in groups:
            qualifiers.extend(placeholder_qualifiers(group, len(group_member_ids(session, group.id))))
        mode = "placeholder"
    else:
        _, qualifiers = _standings_and_qualifiers(session, groups)
        mode = "resolved"

    plan = plan_bracket(qualifiers)
    slots: Optional[Dict[Hashable, Any]] = None
    if schedule_config is not None:
        slots = _schedule_bracket(session, tournament, plan, schedule_config).assignments

    return {
        "tournament_id": tournament.id,
        "mode": mode,
        "pending_group_matches": len(pending),
        "bracket": _bracket_payload(plan, slots=slots),
    }


# ---------------------------------------------------------------------------
# Regenerate schedule
# ---------------------------------------------------------------------------


def regenerate_schedule_steps(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    schedule_config: ScheduleConfig,
    phase: str = PHASE_GROUP,
) -> Steps:
    """Re-run assignment over fixtures without a result.

    The target subset's date/time/court is cleared and committed before the
    new assignment is computed; a capacity failure leaves that subset
    unscheduled (fixtures with results are never touched).
    """
    if phase not in SCHEDULE_PHASES:
        raise ValidationError(f"phase must be one of {list(SCHEDULE_PHASES)}")
    tournament = get_owned_tournament(session, owner, tournament_id)
    with tournament_lock(tournament.id):
        session.refresh(tournament)
        yield log_event(f"Regenerating {phase} schedule")
        if tournament.status not in (STATUS_SCHEDULE_REVIEW, STATUS_IN_PROGRESS):
            raise PreconditionError(f"Schedule cannot be regenerated in status {tournament.status}")

        all_matches = _tournament_matches(session, tournament.id)
        targets = [
            m
            for m in all_matches
            if m.phase == phase and m.set1_team1_games is None and m.status not in (MATCH_CANCELLED, MATCH_FINISHED)
        ]
        if not targets:
            raise PreconditionError(f"No {phase} matches without a result to schedule")

        candidates = build_candidate_slots(schedule_config, tournament.match_duration)
        yield log_event(f"{len(targets)} matches to place, {len(candidates)} candidate slots")
        yield progress_event(20, "Slots generated")

        for match in targets:
            match.clear_schedule()
            session.add(match)
        _commit(session, "clear previous schedule")
        yield progress_event(40, "Previous schedule cleared")

        group_order = {g.id: g.group_order for g in _tournament_groups(session, tournament.id)}
        targets.sort(key=lambda m: match_schedule_key(m, group_order))
        target_ids = {m.id for m in targets}
        by_id = {m.id: m for m in all_matches}
        placement_log: List[str] = []
        assignment = assign_fixtures(
            fixture_requests(targets),
            candidates,
            restrictions=with_stand_in_restrictions(
                load_restrictions(session, tournament.id), stand_in_teams(targets, by_id)
            ),
            fixed=fixed_occupants([m for m in all_matches if m.id not in target_ids]),
            on_log=placement_log.append,
        )
        for message in placement_log:
            yield log_event(message)
        yield progress_event(80, "Matches assigned")

        for match in targets:
            apply_slot(match, assignment.assignments[match.id])
            session.add(match)
        _commit(session, "save regenerated schedule")
        yield progress_event(100, "Schedule regenerated")

        logger.info("Tournament %s: %s schedule regenerated (%d matches)", tournament.id, phase, len(targets))
        return {
            "tournament_id": tournament.id,
            "phase": phase,
            "assigned_count": assignment.assigned_count,
            "total_slots": assignment.total_slots,
            "schedule": schedule_rows(targets),
        }


def regenerate_schedule(
    session: Session,
    owner: OwnerContext,
    tournament_id: int,
    schedule_config: ScheduleConfig,
    phase: str = PHASE_GROUP,
) -> Dict[str, Any]:
    return run_to_completion(regenerate_schedule_steps(session, owner, tournament_id, schedule_config, phase))
