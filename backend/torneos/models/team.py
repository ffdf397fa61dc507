from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from torneos.models.restriction import TeamScheduleRestriction
    from torneos.models.tournament import Tournament


class Team(SQLModel, table=True):
    __table_args__ = (
        # A player pair registers once per tournament
        SAUniqueConstraint("tournament_id", "player1_id", "player2_id", name="uq_tournament_team_players"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    owner_id: str = Field(index=True)
    player1_id: int
    player2_id: int
    display_name: Optional[str] = None
    seed: Optional[int] = Field(default=None)  # 1-based, informational
    display_order: int = Field(default=0)  # registration order
    is_substitute: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")
    restrictions: List["TeamScheduleRestriction"] = Relationship(back_populates="team")
