"""
Tournament lifecycle endpoints.

The longer operations come in two flavours:
- plain:   POST .../close-registration            -> JSON result
- stream:  POST .../close-registration-stream     -> text/event-stream
  (data: {"type": "log" | "progress" | "success" | "error", ...})

Both run the same step generator; the stream forwards its events as they happen.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlmodel import Session

from torneos.context import OwnerContext, get_owner_context
from torneos.database import get_session
from torneos.errors import TournamentEngineError
from torneos.models.match import PHASE_GROUP
from torneos.routes.errors import to_http_exception
from torneos.services.progress import run_to_completion, sse_stream
from torneos.services.tournament_flow import (
    close_groups_steps,
    close_registration_steps,
    preview_bracket,
    regenerate_schedule_steps,
)
from torneos.utils.time_slots import ScheduleConfig

router = APIRouter()


class CloseRegistrationRequest(BaseModel):
    team_ids: Optional[List[int]] = None  # defaults to every non-substitute team, registration order
    schedule: Optional[ScheduleConfig] = None


class ScheduleRequest(BaseModel):
    schedule: Optional[ScheduleConfig] = None


class RegenerateScheduleRequest(BaseModel):
    schedule: ScheduleConfig
    phase: str = PHASE_GROUP


def _event_stream(steps) -> StreamingResponse:
    return StreamingResponse(
        sse_stream(steps),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _run(steps) -> Dict[str, Any]:
    try:
        return run_to_completion(steps)
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/close-registration")
def close_registration(
    tournament_id: int,
    payload: Optional[CloseRegistrationRequest] = None,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Form groups and fixtures (optionally scheduled); tournament moves to schedule review"""
    payload = payload or CloseRegistrationRequest()
    return _run(close_registration_steps(session, owner, tournament_id, payload.team_ids, payload.schedule))


@router.post("/tournaments/{tournament_id}/close-registration-stream")
def close_registration_stream(
    tournament_id: int,
    payload: Optional[CloseRegistrationRequest] = None,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> StreamingResponse:
    payload = payload or CloseRegistrationRequest()
    return _event_stream(close_registration_steps(session, owner, tournament_id, payload.team_ids, payload.schedule))


@router.post("/tournaments/{tournament_id}/close-groups")
def close_groups(
    tournament_id: int,
    payload: Optional[ScheduleRequest] = None,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Finalize standings and create the playoff bracket (optionally scheduled)"""
    payload = payload or ScheduleRequest()
    return _run(close_groups_steps(session, owner, tournament_id, payload.schedule))


@router.post("/tournaments/{tournament_id}/close-groups-stream")
def close_groups_stream(
    tournament_id: int,
    payload: Optional[ScheduleRequest] = None,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> StreamingResponse:
    payload = payload or ScheduleRequest()
    return _event_stream(close_groups_steps(session, owner, tournament_id, payload.schedule))


@router.post("/tournaments/{tournament_id}/playoff-preview")
def playoff_preview(
    tournament_id: int,
    payload: Optional[ScheduleRequest] = None,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Bracket shape with placeholders until groups finish. Writes nothing."""
    payload = payload or ScheduleRequest()
    try:
        return preview_bracket(session, owner, tournament_id, payload.schedule)
    except TournamentEngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/regenerate-schedule")
def regenerate_schedule(
    tournament_id: int,
    payload: RegenerateScheduleRequest,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Reschedule matches that have no result yet"""
    return _run(regenerate_schedule_steps(session, owner, tournament_id, payload.schedule, payload.phase))


@router.post("/tournaments/{tournament_id}/regenerate-schedule-stream")
def regenerate_schedule_stream(
    tournament_id: int,
    payload: RegenerateScheduleRequest,
    owner: OwnerContext = Depends(get_owner_context),
    session: Session = Depends(get_session),
) -> StreamingResponse:
    return _event_stream(regenerate_schedule_steps(session, owner, tournament_id, payload.schedule, payload.phase))
