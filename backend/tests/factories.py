"""Small builders shared by the tests."""
from datetime import date
from typing import List, Sequence

from sqlmodel import Session

from torneos.context import OwnerContext
from torneos.models.match import MATCH_FINISHED, TournamentMatch
from torneos.models.team import Team
from torneos.models.tournament import Tournament

OWNER = "club-1"
OTHER_OWNER = "club-2"
OWNER_HEADERS = {"X-Owner-Id": OWNER}
OWNER_CTX = OwnerContext(owner_id=OWNER)


def make_tournament(session: Session, owner_id: str = OWNER, **overrides) -> Tournament:
    data = {
        "owner_id": owner_id,
        "name": "Torneo Apertura",
        "start_date": date(2026, 3, 7),
        "end_date": date(2026, 3, 8),
    }
    data.update(overrides)
    tournament = Tournament(**data)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def make_teams(session: Session, tournament: Tournament, count: int) -> List[Team]:
    teams = []
    for i in range(count):
        team = Team(
            tournament_id=tournament.id,
            owner_id=tournament.owner_id,
            player1_id=100 + 2 * i,
            player2_id=101 + 2 * i,
            display_name=f"Pareja {i + 1}",
            display_order=i + 1,
        )
        session.add(team)
        teams.append(team)
    session.commit()
    for team in teams:
        session.refresh(team)
    return teams


def finished_match(team1_id: int, team2_id: int, sets: Sequence[Sequence[int]], **fields) -> TournamentMatch:
    """Unsaved finished match with aggregates filled from the sets"""
    t1_sets = sum(1 for a, b in sets if a > b)
    t2_sets = sum(1 for a, b in sets if b > a)
    return TournamentMatch(
        tournament_id=fields.pop("tournament_id", 1),
        owner_id=fields.pop("owner_id", OWNER),
        phase=fields.pop("phase", "group"),
        team1_id=team1_id,
        team2_id=team2_id,
        status=MATCH_FINISHED,
        team1_sets=t1_sets,
        team2_sets=t2_sets,
        team1_games_total=sum(a for a, _ in sets),
        team2_games_total=sum(b for _, b in sets),
        winner_team_id=team1_id if t1_sets > t2_sets else team2_id,
        **fields,
    )


def day_schedule(day: str = "2026-03-07", start: str = "09:00", end: str = "13:00", courts=(1, 2)) -> dict:
    return {"days": [{"date": day, "start_time": start, "end_time": end}], "court_ids": list(courts)}


def start_tournament(session: Session, team_count: int, **overrides):
    """Tournament with groups formed and schedule review closed (in progress)"""
    from torneos.services.tournament_flow import close_registration, close_schedule_review

    tournament = make_tournament(session, **overrides)
    teams = make_teams(session, tournament, team_count)
    close_registration(session, OWNER_CTX, tournament.id)
    close_schedule_review(session, OWNER_CTX, tournament.id)
    session.refresh(tournament)
    return tournament, teams
