from datetime import date, time
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from torneos.models.team import Team


class TeamScheduleRestriction(SQLModel, table=True):
    """A range a team cannot play in. end_time 00:00 means end of day."""

    id: Optional[int] = Field(default=None, primary_key=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    owner_id: str = Field(index=True)
    day_date: date
    start_time: time
    end_time: time

    team: "Team" = Relationship(back_populates="restrictions")
