from datetime import date, datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from torneos.config import DEFAULT_MATCH_DURATION

if TYPE_CHECKING:
    from torneos.models.group import TournamentGroup
    from torneos.models.team import Team

# Lifecycle: draft -> schedule_review -> in_progress -> finished
STATUS_DRAFT = "draft"
STATUS_SCHEDULE_REVIEW = "schedule_review"
STATUS_IN_PROGRESS = "in_progress"
STATUS_FINISHED = "finished"
STATUS_CANCELLED = "cancelled"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = Field(default=STATUS_DRAFT)
    has_super_tiebreak: bool = Field(default=False)
    match_duration: int = Field(default=DEFAULT_MATCH_DURATION)  # minutes per fixture
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    teams: List["Team"] = Relationship(back_populates="tournament")
    groups: List["TournamentGroup"] = Relationship(back_populates="tournament")
