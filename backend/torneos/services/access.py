"""Owner-scoped lookups. Anything not owned by the caller is reported as not found."""
from sqlmodel import Session

from torneos.context import OwnerContext
from torneos.errors import NotFoundError
from torneos.models.match import TournamentMatch
from torneos.models.team import Team
from torneos.models.tournament import Tournament


def get_owned_tournament(session: Session, owner: OwnerContext, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament or tournament.owner_id != owner.owner_id:
        raise NotFoundError("Tournament not found")
    return tournament


def get_owned_match(session: Session, owner: OwnerContext, match_id: int) -> TournamentMatch:
    match = session.get(TournamentMatch, match_id)
    if not match or match.owner_id != owner.owner_id:
        raise NotFoundError("Match not found")
    return match


def get_owned_team(session: Session, owner: OwnerContext, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team or team.owner_id != owner.owner_id:
        raise NotFoundError("Team not found")
    return team
