from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class GroupStanding(SQLModel, table=True):
    """Derived row. Replaced wholesale whenever the group is recomputed."""

    __table_args__ = (SAUniqueConstraint("group_id", "team_id", name="uq_group_standing_team"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="tournamentgroup.id", index=True)
    team_id: int = Field(foreign_key="team.id")
    position: int
    matches_played: int = Field(default=0)
    wins: int = Field(default=0)
    losses: int = Field(default=0)
    sets_won: int = Field(default=0)
    sets_lost: int = Field(default=0)
    games_won: int = Field(default=0)
    games_lost: int = Field(default=0)
