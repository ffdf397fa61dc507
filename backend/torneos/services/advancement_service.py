"""
Advancement: when a match is finished, fill the team slots of the matches
that list it as a source (source_match1_id / source_match2_id).

Roles:
- WINNER: playoff rounds and the order3 match of a 4-team group
- LOSER: the order4 match of a 4-team group

Playoff slots are written as soon as their feeder finishes. Group order3 and
order4 wait until both order1 and order2 are finished. A downstream match
whose two slots are both filled moves from pending to scheduled. No schedule fields are touched here.
"""
import logging
from typing import Dict, List, Optional

from sqlmodel import Session, or_, select

from torneos.models.match import (
    MATCH_FINISHED,
    MATCH_PENDING,
    MATCH_SCHEDULED,
    PHASE_GROUP,
    ROLE_LOSER,
    ROLE_WINNER,
    TournamentMatch,
)

logger = logging.getLogger(__name__)


def _team_for_role(match: TournamentMatch, role: Optional[str]) -> Optional[int]:
    winner_id = match.winner_team_id
    if winner_id is None:
        return None
    if role == ROLE_WINNER:
        return winner_id
    if role == ROLE_LOSER:
        return match.team2_id if winner_id == match.team1_id else match.team1_id
    return None


def downstream_matches(session: Session, match_id: int) -> List[TournamentMatch]:
    return list(
        session.exec(
            select(TournamentMatch)
            .where(
                or_(
                    TournamentMatch.source_match1_id == match_id,
                    TournamentMatch.source_match2_id == match_id,
                )
            )
            .order_by(TournamentMatch.id)
        ).all()
    )


def downstream_has_result(session: Session, match_id: int) -> bool:
    """True when any match fed by this one already holds a result"""
    return any(
        m.status == MATCH_FINISHED or m.set1_team1_games is not None for m in downstream_matches(session, match_id)
    )


def _refresh_status(match: TournamentMatch) -> None:
    if match.status in (MATCH_PENDING, MATCH_SCHEDULED):
        both = match.team1_id is not None and match.team2_id is not None
        match.status = MATCH_SCHEDULED if both else MATCH_PENDING


def clear_downstream_slots(session: Session, match_id: int) -> int:
    """Empty the slots this match fed (used before correcting its result). Caller commits."""
    cleared = 0
    for down in downstream_matches(session, match_id):
        if down.source_match1_id == match_id and down.team1_id is not None:
            down.team1_id = None
            cleared += 1
        if down.source_match2_id == match_id and down.team2_id is not None:
            down.team2_id = None
            cleared += 1
        _refresh_status(down)
        session.add(down)
    return cleared


def _sources_finished(session: Session, match: TournamentMatch) -> bool:
    for source_id in (match.source_match1_id, match.source_match2_id):
        if source_id is None:
            continue
        source = session.get(TournamentMatch, source_id)
        if source is None or source.status != MATCH_FINISHED or source.winner_team_id is None:
            return False
    return True


def _fill_slot(down: TournamentMatch, slot: int, source: TournamentMatch) -> bool:
    role = getattr(down, f"source{slot}_role")
    current = getattr(down, f"team{slot}_id")
    team_id = _team_for_role(source, role)
    if team_id is None:
        return False
    if current is None:
        setattr(down, f"team{slot}_id", team_id)
        return True
    if current != team_id:
        logger.warning("Match %s slot %d already holds team %s; not overwriting with %s", down.id, slot, current, team_id)
    return False


def apply_advancement_for_finished_match(session: Session, match_id: int, commit: bool = True) -> int:
    """
    Given a finished match, write its winner/loser into the downstream slots
    it feeds. Returns the count of slots updated.
    Idempotent: a slot is only written when empty or already holding the same team.

    Group-phase dependents (order3/order4) are filled together, from both
    sources, once every source match is finished; until then nothing is written.
    """
    match = session.get(TournamentMatch, match_id)
    if not match:
        return 0
    if match.status != MATCH_FINISHED or match.winner_team_id is None:
        return 0

    updated_count = 0
    for down in downstream_matches(session, match_id):
        if down.phase == PHASE_GROUP:
            if not _sources_finished(session, down):
                logger.debug("Match %s waits for its other source before taking teams", down.id)
                continue
            sources = {
                slot: session.get(TournamentMatch, source_id)
                for slot, source_id in ((1, down.source_match1_id), (2, down.source_match2_id))
                if source_id is not None
            }
        else:
            sources = {}
            if down.source_match1_id == match_id:
                sources[1] = match
            if down.source_match2_id == match_id:
                sources[2] = match
        changed = 0
        for slot, source in sources.items():
            if source is not None and _fill_slot(down, slot, source):
                changed += 1
        if changed:
            _refresh_status(down)
            session.add(down)
            updated_count += changed

    if updated_count and commit:
        session.commit()
    return updated_count


def resolve_all_dependencies(session: Session, tournament_id: int) -> Dict[str, int]:
    """
    Bulk-apply advancement for every finished match of a tournament.

    Returns:
        Dict with matches_processed, teams_advanced, unknown_before, unknown_after

    Guarantees:
        - Idempotent (safe to call multiple times)
        - Deterministic ordering (processes by match id)
    """
    all_matches = session.exec(select(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id)).all()
    unknown_before = sum(1 for m in all_matches if m.team1_id is None or m.team2_id is None)

    finished = session.exec(
        select(TournamentMatch)
        .where(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.status == MATCH_FINISHED,
            TournamentMatch.winner_team_id.is_not(None),
        )
        .order_by(TournamentMatch.id)
    ).all()

    matches_processed = 0
    teams_advanced = 0
    for match in finished:
        teams_advanced += apply_advancement_for_finished_match(session, match.id)
        matches_processed += 1

    session.expire_all()
    all_matches_after = session.exec(
        select(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id)
    ).all()
    unknown_after = sum(1 for m in all_matches_after if m.team1_id is None or m.team2_id is None)

    return {
        "matches_processed": matches_processed,
        "teams_advanced": teams_advanced,
        "unknown_before": unknown_before,
        "unknown_after": unknown_after,
    }
