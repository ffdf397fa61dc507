from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from torneos.config import DEFAULT_MATCH_DURATION
from torneos.context import OwnerContext, get_owner_context
from torneos.database import get_session
from torneos.errors import TournamentEngineError
from torneos.models.tournament import Tournament
from torneos.routes.errors import to_http_exception
from torneos.services.access import get_owned_tournament
from torneos.services.tournament_flow import close_schedule_review, reopen_schedule_review

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    has_super_tiebreak: bool = False
    match_duration: int = DEFAULT_MATCH_DURATION

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("match_duration")
    @classmethod
    def validate_match_duration(cls, v):
        if v <= 0:
            raise ValueError("match_duration must be > 0")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    category: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    status: str
    has_super_tiebreak: bool
    match_duration: int
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """List the caller's tournaments"""
    return session.exec(
        select(Tournament).where(Tournament.owner_id == owner.owner_id).order_by(Tournament.id)
    ).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(
    tournament_data: TournamentCreate,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Create a tournament in draft (registration open)"""
    tournament = Tournament(owner_id=owner.owner_id, **tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    try:
        return get_owned_tournament(session, owner, tournament_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/close-schedule-review", response_model=TournamentResponse)
def close_review(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Confirm the group schedule and start the tournament"""
    try:
        return close_schedule_review(session, owner, tournament_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/reopen-schedule-review", response_model=TournamentResponse)
def reopen_review(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Go back to schedule review; only while no group match has started"""
    try:
        return reopen_schedule_review(session, owner, tournament_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)

