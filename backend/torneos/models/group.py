from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from torneos.models.tournament import Tournament


class TournamentGroup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "group_order", name="uq_tournament_group_order"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    owner_id: str = Field(index=True)
    name: str  # "Zona A", "Zona B", ...
    group_order: int  # 1-based; letter = A + group_order - 1

    tournament: "Tournament" = Relationship(back_populates="groups")
    members: List["GroupTeam"] = Relationship(back_populates="group")


class GroupTeam(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("group_id", "team_id", name="uq_group_team"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    group_id: int = Field(foreign_key="tournamentgroup.id", index=True)
    team_id: int = Field(foreign_key="team.id", index=True)
    position_in_group: int  # slice order from registration

    group: "TournamentGroup" = Relationship(back_populates="members")
