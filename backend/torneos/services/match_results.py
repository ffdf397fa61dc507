"""
Match result processing.

1. Validate the sets (super tiebreak allowed only where the tournament enables
   it and the match is not cuartos/semifinal/final).
2. Persist sets, aggregates, winner and status=finished (one commit).
3. Follow-up, by phase:
   - group: fill order3/order4 once order1 and order2 are both finished,
     then recompute the group's standings
   - playoff: push the winner into the next-round match; the final closes
     the tournament

A follow-up failure after step 2 is logged and returned in
``follow_up_error``; the committed result is kept.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from torneos.context import OwnerContext
from torneos.errors import PersistenceError, PreconditionError, TournamentEngineError, ValidationError
from torneos.models.match import MATCH_CANCELLED, MATCH_FINISHED, PHASE_GROUP, PHASE_PLAYOFF, TournamentMatch
from torneos.models.tournament import STATUS_FINISHED, STATUS_IN_PROGRESS, Tournament
from torneos.services.access import get_owned_match
from torneos.services.advancement_service import (
    apply_advancement_for_finished_match,
    clear_downstream_slots,
    downstream_has_result,
)
from torneos.services.bracket import NO_SUPER_TIEBREAK_ROUNDS, next_round, tournament_has_playoffs
from torneos.services.score_parser import ParsedScore, summarize_sets
from torneos.services.score_validation import validate_set_list
from torneos.services.standings import StandingRow, recompute_group_standings
from torneos.services.tournament_lock import tournament_lock

logger = logging.getLogger(__name__)


@dataclass
class MatchResultOutcome:
    match: TournamentMatch
    score: ParsedScore
    advanced_count: int = 0
    standings: Optional[List[StandingRow]] = None
    tournament_finished: bool = False
    follow_up_error: Optional[str] = None


def super_tiebreak_allowed(tournament: Tournament, match: TournamentMatch) -> bool:
    if not tournament.has_super_tiebreak:
        return False
    return not (match.phase == PHASE_PLAYOFF and match.round in NO_SUPER_TIEBREAK_ROUNDS)


def _check_can_record(session: Session, tournament: Tournament, match: TournamentMatch) -> None:
    if tournament.status not in (STATUS_IN_PROGRESS, STATUS_FINISHED):
        raise PreconditionError(
            f"Results can only be recorded while the tournament is in progress (status: {tournament.status})"
        )
    if match.status == MATCH_CANCELLED:
        raise PreconditionError("Match is cancelled")
    if match.team1_id is None or match.team2_id is None:
        raise PreconditionError("Both teams must be known before recording a result")
    if match.phase == PHASE_GROUP and tournament_has_playoffs(session, tournament.id):
        raise PreconditionError("Group stage is closed; group results can no longer change")
    if match.status == MATCH_FINISHED and downstream_has_result(session, match.id):
        raise PreconditionError("Cannot correct this result: a match it feeds already has a result")


def _write_result(match: TournamentMatch, parsed: ParsedScore, super_tiebreak: bool) -> None:
    padded = list(parsed.sets) + [(None, None)] * (3 - len(parsed.sets))
    match.set1_team1_games, match.set1_team2_games = padded[0]
    match.set2_team1_games, match.set2_team2_games = padded[1]
    match.set3_team1_games, match.set3_team2_games = padded[2]
    match.has_super_tiebreak = super_tiebreak and len(parsed.sets) == 3
    match.team1_sets = parsed.team1_sets_won
    match.team2_sets = parsed.team2_sets_won
    match.team1_games_total = parsed.team1_games
    match.team2_games_total = parsed.team2_games
    match.winner_team_id = match.team1_id if parsed.winner_side == 1 else match.team2_id
    match.status = MATCH_FINISHED
    match.completed_at = datetime.utcnow()


def _follow_up(session: Session, tournament: Tournament, match: TournamentMatch, outcome: MatchResultOutcome) -> None:
    if match.phase == PHASE_GROUP:
        outcome.advanced_count = apply_advancement_for_finished_match(session, match.id)
        standings = recompute_group_standings(session, [match.group_id])
        outcome.standings = standings[match.group_id]
        return

    if next_round(match.round) is None:
        tournament.status = STATUS_FINISHED
        session.add(tournament)
        session.commit()
        outcome.tournament_finished = True
        logger.info("Tournament %s finished: final won by team %s", tournament.id, match.winner_team_id)
        return

    outcome.advanced_count = apply_advancement_for_finished_match(session, match.id)


def submit_match_result(
    session: Session,
    owner: OwnerContext,
    match_id: int,
    sets: Sequence[Sequence[int]],
) -> MatchResultOutcome:
    match = get_owned_match(session, owner, match_id)

    with tournament_lock(match.tournament_id):
        session.refresh(match)
        tournament = session.get(Tournament, match.tournament_id)
        session.refresh(tournament)
        _check_can_record(session, tournament, match)

        allowed = super_tiebreak_allowed(tournament, match)
        verdict = validate_set_list(sets, allowed)
        if not verdict.valid:
            raise ValidationError(verdict.error)
        parsed = summarize_sets(sets)

        correcting = match.status == MATCH_FINISHED
        try:
            if correcting:
                clear_downstream_slots(session, match.id)
            _write_result(match, parsed, allowed)
            session.add(match)
            session.commit()
            session.refresh(match)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Failed to save result for match %s", match_id)
            raise PersistenceError(f"Could not save match result: {exc}") from exc

        logger.info(
            "Result recorded for match %s (%s): %s, winner team %s",
            match.id,
            match.round or f"group {match.group_id}",
            " ".join(f"{a}-{b}" for a, b in parsed.sets),
            match.winner_team_id,
        )

        outcome = MatchResultOutcome(match=match, score=parsed)
        try:
            _follow_up(session, tournament, match, outcome)
        except (TournamentEngineError, SQLAlchemyError) as exc:
            # The result stays committed; the caller is told the follow-up failed
            session.rollback()
            logger.exception("Follow-up after result of match %s failed", match.id)
            outcome.follow_up_error = str(exc)
        session.refresh(match)
        return outcome
