"""
Runtime: match results and advancement.

Recording a result finishes the match, then fills dependent matches
(order3/order4 in 4-team groups, next playoff round) and refreshes the
group's standings. Schedules are never changed here.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, model_validator
from sqlmodel import Session

from torneos.context import OwnerContext, get_owner_context
from torneos.database import get_session
from torneos.errors import TournamentEngineError
from torneos.models.match import MATCH_FINISHED
from torneos.routes.errors import to_http_exception
from torneos.routes.schemas import MatchResponse, StandingResponse
from torneos.services.access import get_owned_match, get_owned_tournament
from torneos.services.advancement_service import apply_advancement_for_finished_match, resolve_all_dependencies
from torneos.services.match_results import submit_match_result
from torneos.services.score_parser import parse_score_string
from torneos.services.tournament_lock import tournament_lock

router = APIRouter()


class MatchResultRequest(BaseModel):
    """Either ordered set pairs or a score string such as "6-2 4-6 10-7" """

    sets: Optional[List[List[int]]] = None
    score: Optional[str] = None

    @model_validator(mode="after")
    def validate_one_form(self):
        if self.sets is None and self.score is None:
            raise ValueError("sets or score is required")
        if self.sets is not None and self.score is not None:
            raise ValueError("send either sets or score, not both")
        if self.score is not None:
            parsed = parse_score_string(self.score)
            if parsed is None:
                raise ValueError(f"Could not parse score '{self.score}'")
            self.sets = [list(pair) for pair in parsed]
        return self


class MatchResultResponse(BaseModel):
    match: MatchResponse
    advanced_count: int = 0
    standings: Optional[List[StandingResponse]] = None
    tournament_finished: bool = False
    follow_up_error: Optional[str] = None


@router.post("/matches/{match_id}/result", response_model=MatchResultResponse)
def record_match_result(
    match_id: int,
    payload: MatchResultRequest,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> MatchResultResponse:
    """Validate and store a result, then advance teams / refresh standings."""
    try:
        outcome = submit_match_result(session, owner, match_id, payload.sets)
    except TournamentEngineError as e:
        raise to_http_exception(e)

    standings = None
    if outcome.standings is not None:
        standings = [StandingResponse.model_validate(r) for r in outcome.standings]
    return MatchResultResponse(
        match=MatchResponse.model_validate(outcome.match),
        advanced_count=outcome.advanced_count,
        standings=standings,
        tournament_finished=outcome.tournament_finished,
        follow_up_error=outcome.follow_up_error,
    )


@router.post("/matches/{match_id}/advance", response_model=Dict[str, int])
def advance_match(
    match_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    """Re-run advancement for a finished match (repair after a failed follow-up)."""
    try:
        match = get_owned_match(session, owner, match_id)
        with tournament_lock(match.tournament_id):
            session.refresh(match)
            if match.status != MATCH_FINISHED or match.winner_team_id is None:
                raise HTTPException(status_code=422, detail="Match must be finished to run advancement")
            advanced_count = apply_advancement_for_finished_match(session, match_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)
    return {"advanced_count": advanced_count}


@router.post("/tournaments/{tournament_id}/resolve-dependencies", response_model=Dict[str, int])
def resolve_dependencies(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, int]:
    """Bulk-apply advancement for every finished match. Idempotent."""
    try:
        tournament = get_owned_tournament(session, owner, tournament_id)
        with tournament_lock(tournament.id):
            return resolve_all_dependencies(session, tournament.id)
    except TournamentEngineError as e:
        raise to_http_exception(e)
