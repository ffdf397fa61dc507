from torneos.models.group import GroupTeam, TournamentGroup
from torneos.models.match import TournamentMatch
from torneos.models.restriction import TeamScheduleRestriction
from torneos.models.standing import GroupStanding
from torneos.models.team import Team
from torneos.models.tournament import Tournament

__all__ = [
    "Tournament",
    "Team",
    "TeamScheduleRestriction",
    "TournamentGroup",
    "GroupTeam",
    "TournamentMatch",
    "GroupStanding",
]
