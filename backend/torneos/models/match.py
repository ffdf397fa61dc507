from datetime import date, datetime, time
from typing import Optional

from sqlmodel import Field, SQLModel

PHASE_GROUP = "group"
PHASE_PLAYOFF = "playoff"

# pending: at least one team slot still waits on a predecessor
MATCH_PENDING = "pending"
MATCH_SCHEDULED = "scheduled"
MATCH_IN_PROGRESS = "in_progress"
MATCH_FINISHED = "finished"
MATCH_CANCELLED = "cancelled"

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"


class TournamentMatch(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    owner_id: str = Field(index=True)
    phase: str  # "group" | "playoff"

    # Group phase
    group_id: Optional[int] = Field(default=None, foreign_key="tournamentgroup.id", index=True)
    match_order: Optional[int] = Field(default=None)  # 1..4, only inside 4-team groups

    # Playoff phase
    round: Optional[str] = Field(default=None)  # "16avos" | "octavos" | "cuartos" | "semifinal" | "final"
    bracket_pos: Optional[int] = Field(default=None)  # 1..K within round

    # Teams (nullable until predecessors finish)
    team1_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team2_id: Optional[int] = Field(default=None, foreign_key="team.id")

    # Predecessor edges: upstream match -> team slot
    source_match1_id: Optional[int] = Field(default=None, foreign_key="tournamentmatch.id")
    source_match2_id: Optional[int] = Field(default=None, foreign_key="tournamentmatch.id")
    source1_role: Optional[str] = Field(default=None)  # "WINNER" | "LOSER"
    source2_role: Optional[str] = Field(default=None)
    # Display only ("1A", "Ganador Cuartos2"); never parsed
    source1_label: Optional[str] = Field(default=None)
    source2_label: Optional[str] = Field(default=None)

    status: str = Field(default=MATCH_SCHEDULED)

    # Schedule (written only by the schedule assigner)
    court_id: Optional[int] = Field(default=None)
    match_date: Optional[date] = Field(default=None)
    start_time: Optional[time] = Field(default=None)
    end_time: Optional[time] = Field(default=None)

    # Result
    set1_team1_games: Optional[int] = Field(default=None)
    set1_team2_games: Optional[int] = Field(default=None)
    set2_team1_games: Optional[int] = Field(default=None)
    set2_team2_games: Optional[int] = Field(default=None)
    set3_team1_games: Optional[int] = Field(default=None)
    set3_team2_games: Optional[int] = Field(default=None)
    has_super_tiebreak: bool = Field(default=False)
    team1_sets: int = Field(default=0)
    team2_sets: int = Field(default=0)
    team1_games_total: int = Field(default=0)
    team2_games_total: int = Field(default=0)
    winner_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def clear_schedule(self) -> None:
        self.court_id = None
        self.match_date = None
        self.start_time = None
        self.end_time = None
