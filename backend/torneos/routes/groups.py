"""Read-only views: groups with fixtures and standings, playoff bracket, match list."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from torneos.context import OwnerContext, get_owner_context
from torneos.database import get_session
from torneos.errors import TournamentEngineError
from torneos.models.group import TournamentGroup
from torneos.models.match import PHASE_PLAYOFF, TournamentMatch
from torneos.routes.errors import to_http_exception
from torneos.routes.schemas import GroupResponse, MatchResponse, StandingResponse
from torneos.services.access import get_owned_tournament
from torneos.services.bracket import round_index
from torneos.services.standings import compute_standings_for_group, group_member_ids, stored_standings

router = APIRouter()


def _owned_tournament(session: Session, owner: OwnerContext, tournament_id: int):
    try:
        return get_owned_tournament(session, owner, tournament_id)
    except TournamentEngineError as e:
        raise to_http_exception(e)


def _group_standings(session: Session, group_id: int) -> List[StandingResponse]:
    """Stored rows; computed on the fly (not saved) when none exist yet"""
    rows = stored_standings(session, group_id) or compute_standings_for_group(session, group_id)
    return [StandingResponse.model_validate(r) for r in rows]


@router.get("/tournaments/{tournament_id}/groups", response_model=List[GroupResponse])
def list_groups(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    _owned_tournament(session, owner, tournament_id)
    groups = session.exec(
        select(TournamentGroup)
        .where(TournamentGroup.tournament_id == tournament_id)
        .order_by(TournamentGroup.group_order)
    ).all()

    response = []
    for group in groups:
        matches = session.exec(
            select(TournamentMatch)
            .where(TournamentMatch.group_id == group.id)
            .order_by(TournamentMatch.match_order, TournamentMatch.id)
        ).all()
        response.append(
            GroupResponse(
                id=group.id,
                name=group.name,
                group_order=group.group_order,
                team_ids=group_member_ids(session, group.id),
                matches=[MatchResponse.model_validate(m) for m in matches],
                standings=_group_standings(session, group.id),
            )
        )
    return response


@router.get("/groups/{group_id}/standings", response_model=List[StandingResponse])
def get_group_standings(
    group_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    group = session.get(TournamentGroup, group_id)
    if not group or group.owner_id != owner.owner_id:
        raise HTTPException(status_code=404, detail="Group not found")
    return _group_standings(session, group_id)


@router.get("/tournaments/{tournament_id}/playoffs", response_model=List[MatchResponse])
def list_playoff_matches(
    tournament_id: int,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    """Playoff matches, earliest round first, then bracket position"""
    _owned_tournament(session, owner, tournament_id)
    matches = session.exec(
        select(TournamentMatch).where(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.phase == PHASE_PLAYOFF,
        )
    ).all()
    return sorted(matches, key=lambda m: (round_index(m.round), m.bracket_pos))


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    phase: Optional[str] = None,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
):
    _owned_tournament(session, owner, tournament_id)
    query = select(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id)
    if phase is not None:
        query = query.where(TournamentMatch.phase == phase)
    return session.exec(query.order_by(TournamentMatch.id)).all()
