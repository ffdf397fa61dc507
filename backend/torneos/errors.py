"""
Domain errors raised by the tournament engine.

Services raise these; the HTTP layer maps them to status codes
(see torneos.routes.errors) and the streaming layer turns them into a
terminal ``error`` event.
"""
from typing import Any, Dict, Optional


class TournamentEngineError(Exception):
    """Base exception for tournament engine errors"""

    code = "engine_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(TournamentEngineError):
    """Malformed input: bad set scores, missing courts/days, inverted time ranges"""

    code = "validation_error"
    status_code = 422


class NotFoundError(TournamentEngineError):
    """Tournament/match/team absent or not owned by the caller"""

    code = "not_found"
    status_code = 404


class PreconditionError(TournamentEngineError):
    """Operation not allowed in the tournament's current state"""

    code = "precondition_failed"
    status_code = 400


class TournamentBusyError(PreconditionError):
    """Another mutating operation holds the tournament lock"""

    code = "tournament_busy"
    status_code = 409


class CapacityError(TournamentEngineError):
    """Not enough candidate slots to place every fixture"""

    code = "insufficient_slots"
    status_code = 400

    def __init__(self, message: str, slots_needed: int, slots_available: int, unplaced: Optional[list] = None):
        super().__init__(message)
        self.slots_needed = slots_needed
        self.slots_available = slots_available
        self.unplaced = unplaced or []

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["slots_needed"] = self.slots_needed
        data["slots_available"] = self.slots_available
        return data


class PersistenceError(TournamentEngineError):
    """Underlying write failed"""

    code = "persistence_error"
    status_code = 500


class ScheduleConflictError(PreconditionError):
    """A manual slot collides with another match"""

    code = "schedule_conflict"
    status_code = 409
