"""Schedule review edits: swap teams, swap group schedules, set one match's slot by hand."""
from datetime import date, time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlmodel import Session

from torneos.context import OwnerContext, get_owner_context
from torneos.database import get_session
from torneos.errors import TournamentEngineError
from torneos.routes.errors import to_http_exception
from torneos.routes.schemas import MatchResponse
from torneos.services.schedule_review import swap_group_schedules, swap_teams, update_match_schedule

router = APIRouter()


class SwapTeamsRequest(BaseModel):
    team1_id: int
    group1_id: int
    team2_id: int
    group2_id: int


class SwapGroupsRequest(BaseModel):
    group1_id: int
    group2_id: int


class MatchScheduleUpdate(BaseModel):
    """Only the fields sent are changed; null clears a field"""

    match_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    court_id: Optional[int] = None

    @field_validator("court_id")
    @classmethod
    def validate_court(cls, v):
        if v is not None and v <= 0:
            raise ValueError("court_id must be a positive integer")
        return v


@router.post("/tournaments/{tournament_id}/swap-teams")
def swap_tournament_teams(
    tournament_id: int,
    payload: SwapTeamsRequest,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Two teams trade group and fixtures; match slots stay put"""
    try:
        return swap_teams(
            session,
            owner,
            tournament_id,
            payload.team1_id,
            payload.group1_id,
            payload.team2_id,
            payload.group2_id,
        )
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/swap-groups")
def swap_tournament_group_schedules(
    tournament_id: int,
    payload: SwapGroupsRequest,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Two groups of the same size trade their fixtures' slots"""
    try:
        return swap_group_schedules(session, owner, tournament_id, payload.group1_id, payload.group2_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.patch("/matches/{match_id}/schedule", response_model=MatchResponse)
def update_schedule(
    match_id: int,
    payload: MatchScheduleUpdate,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    try:
        return update_match_schedule(session, owner, match_id, payload.model_dump(exclude_unset=True))
    except TournamentEngineError as e:
        raise to_http_exception(e)
