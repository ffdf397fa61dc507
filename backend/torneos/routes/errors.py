from fastapi import HTTPException

from torneos.errors import CapacityError, TournamentEngineError


def to_http_exception(exc: TournamentEngineError) -> HTTPException:
    """Map a domain error onto the status code it declares"""
    if isinstance(exc, CapacityError):
        return HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    return HTTPException(status_code=exc.status_code, detail=exc.message)
