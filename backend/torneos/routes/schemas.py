from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    phase: str
    group_id: Optional[int] = None
    match_order: Optional[int] = None
    round: Optional[str] = None
    bracket_pos: Optional[int] = None
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    source_match1_id: Optional[int] = None
    source_match2_id: Optional[int] = None
    source1_role: Optional[str] = None
    source2_role: Optional[str] = None
    source1_label: Optional[str] = None
    source2_label: Optional[str] = None
    status: str
    court_id: Optional[int] = None
    match_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    set1_team1_games: Optional[int] = None
    set1_team2_games: Optional[int] = None
    set2_team1_games: Optional[int] = None
    set2_team2_games: Optional[int] = None
    set3_team1_games: Optional[int] = None
    set3_team2_games: Optional[int] = None
    has_super_tiebreak: bool = False
    team1_sets: int = 0
    team2_sets: int = 0
    team1_games_total: int = 0
    team2_games_total: int = 0
    winner_team_id: Optional[int] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StandingResponse(BaseModel):
    team_id: int
    position: int
    matches_played: int
    wins: int
    losses: int
    sets_won: int
    sets_lost: int
    games_won: int
    games_lost: int

    class Config:
        from_attributes = True


class GroupResponse(BaseModel):
    id: int
    name: str
    group_order: int
    team_ids: List[int]
    matches: List[MatchResponse]
    standings: List[StandingResponse]
