from datetime import date, time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, model_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, func, select

from torneos.context import OwnerContext, get_owner_context
from torneos.database import get_session
from torneos.errors import TournamentEngineError
from torneos.models.restriction import TeamScheduleRestriction
from torneos.models.team import Team
from torneos.models.tournament import STATUS_DRAFT
from torneos.routes.errors import to_http_exception
from torneos.services.access import get_owned_team, get_owned_tournament
from torneos.utils.time_slots import end_to_minutes, time_to_minutes

router = APIRouter()


class TeamCreate(BaseModel):
    player1_id: int
    player2_id: int
    display_name: Optional[str] = None
    seed: Optional[int] = None
    is_substitute: bool = False

    @model_validator(mode="after")
    def validate_players(self):
        if self.player1_id == self.player2_id:
            raise ValueError("A team needs two different players")
        if self.seed is not None and self.seed < 1:
            raise ValueError("seed must be >= 1")
        return self


class TeamResponse(BaseModel):
    id: int
    tournament_id: int
    player1_id: int
    player2_id: int
    display_name: Optional[str]
    seed: Optional[int]
    display_order: int
    is_substitute: bool

    class Config:
        from_attributes = True


class RestrictionCreate(BaseModel):
    day_date: date
    start_time: time
    end_time: time  # 00:00 = end of day

    @model_validator(mode="after")
    def validate_times(self):
        if time_to_minutes(self.start_time) >= end_to_minutes(self.end_time):
            raise ValueError("end_time must be greater than start_time")
        return self


class RestrictionResponse(BaseModel):
    id: int
    team_id: int
    day_date: date
    start_time: time
    end_time: time

    class Config:
        from_attributes = True


def _owned_tournament(session: Session, owner: OwnerContext, tournament_id: int):
    try:
        return get_owned_tournament(session, owner, tournament_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)


def _owned_team(session: Session, owner: OwnerContext, team_id: int) -> Team:
    try:
        return get_owned_team(session, owner, team_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamResponse, status_code=201)
def register_team(
    tournament_id: int,
    team_data: TeamCreate,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Register a team; registration order is kept as display_order"""
    tournament = _owned_tournament(session, owner, tournament_id)
    if tournament.status != STATUS_DRAFT:
        raise HTTPException(status_code=400, detail="Registration is closed for this tournament")

    last_order = session.exec(select(func.max(Team.display_order)).where(Team.tournament_id == tournament_id)).one()
    team = Team(
        tournament_id=tournament_id,
        owner_id=owner.owner_id,
        display_order=(last_order or 0) + 1,
        **team_data.model_dump(),
    )
    session.add(team)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail="This player pair is already registered")
    session.refresh(team)
    return team


@router.get("/tournaments/{tournament_id}/teams", response_model=List[TeamResponse])
def list_teams(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    _owned_tournament(session, owner, tournament_id)
    return session.exec(
        select(Team).where(Team.tournament_id == tournament_id).order_by(Team.display_order, Team.id)
    ).all()


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
def delete_team(
    tournament_id: int,
    team_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Remove a team while registration is still open"""
    tournament = _owned_tournament(session, owner, tournament_id)
    team = _owned_team(session, owner, team_id)
    if team.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Team not found")
    if tournament.status != STATUS_DRAFT:
        raise HTTPException(status_code=400, detail="Teams can only be removed while registration is open")

    for restriction in session.exec(
        select(TeamScheduleRestriction).where(TeamScheduleRestriction.team_id == team_id)
    ).all():
        session.delete(restriction)
    session.delete(team)
    session.commit()
    return Response(status_code=204)


@router.get("/teams/{team_id}/restrictions", response_model=List[RestrictionResponse])
def list_restrictions(
    team_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    _owned_team(session, owner, team_id)
    return session.exec(
        select(TeamScheduleRestriction)
        .where(TeamScheduleRestriction.team_id == team_id)
        .order_by(TeamScheduleRestriction.day_date, TeamScheduleRestriction.start_time)
    ).all()


@router.post("/teams/{team_id}/restrictions", response_model=RestrictionResponse, status_code=201)
def add_restriction(
    team_id: int,
    restriction_data: RestrictionCreate,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Block a date/time range for a team (honoured by the next schedule run)"""
    _owned_team(session, owner, team_id)
    restriction = TeamScheduleRestriction(team_id=team_id, owner_id=owner.owner_id, **restriction_data.model_dump())
    session.add(restriction)
    session.commit()
    session.refresh(restriction)
    return restriction


@router.delete("/restrictions/{restriction_id}", status_code=204)
def delete_restriction(
    restriction_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    restriction = session.get(TeamScheduleRestriction, restriction_id)
    if not restriction or restriction.owner_id != owner.owner_id:
        raise HTTPException(status_code=404, detail="Restriction not found")
    session.delete(restriction)
    session.commit()
    return Response(status_code=204)
