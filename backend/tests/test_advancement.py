from sqlmodel import Session, select

from tests.factories import start_tournament
from torneos.models.match import MATCH_FINISHED, PHASE_GROUP, TournamentMatch
from torneos.services.advancement_service import apply_advancement_for_finished_match, resolve_all_dependencies


def _finish(session: Session, match: TournamentMatch, winner_id: int) -> None:
    match.status = MATCH_FINISHED
    match.set1_team1_games, match.set1_team2_games = 6, 0
    match.winner_team_id = winner_id
    session.add(match)
    session.commit()


def _group_matches(session: Session, tournament_id: int):
    return session.exec(
        select(TournamentMatch)
        .where(TournamentMatch.tournament_id == tournament_id, TournamentMatch.phase == PHASE_GROUP)
        .order_by(TournamentMatch.id)
    ).all()


def test_unfinished_match_advances_nothing(session: Session):
    tournament, _ = start_tournament(session, 4)
    order1 = _group_matches(session, tournament.id)[0]
    assert apply_advancement_for_finished_match(session, order1.id) == 0
    assert apply_advancement_for_finished_match(session, 9999) == 0


def test_group_dependents_wait_for_both_openers(session: Session):
    tournament, teams = start_tournament(session, 4)
    order1, order2, order3, order4 = _group_matches(session, tournament.id)
    _finish(session, order1, teams[3].id)

    assert apply_advancement_for_finished_match(session, order1.id) == 0
    session.refresh(order3)
    session.refresh(order4)
    assert (order3.team1_id, order3.team2_id, order4.team1_id, order4.team2_id) == (None, None, None, None)

    _finish(session, order2, teams[1].id)
    assert apply_advancement_for_finished_match(session, order1.id) == 4
    session.refresh(order3)
    session.refresh(order4)
    assert (order3.team1_id, order3.team2_id) == (teams[3].id, teams[1].id)
    assert (order4.team1_id, order4.team2_id) == (teams[0].id, teams[2].id)


def test_advancement_is_idempotent(session: Session):
    tournament, teams = start_tournament(session, 4)
    order1, order2, order3, order4 = _group_matches(session, tournament.id)
    _finish(session, order1, teams[3].id)
    _finish(session, order2, teams[2].id)

    assert apply_advancement_for_finished_match(session, order1.id) == 4
    assert apply_advancement_for_finished_match(session, order1.id) == 0
    assert apply_advancement_for_finished_match(session, order2.id) == 0
    session.refresh(order3)
    session.refresh(order4)
    assert order3.team1_id == teams[3].id
    assert order4.team1_id == teams[0].id


def test_existing_slot_is_never_overwritten(session: Session):
    tournament, teams = start_tournament(session, 4)
    order1, order2, order3, _ = _group_matches(session, tournament.id)
    order3.team1_id = teams[1].id
    session.add(order3)
    session.commit()
    _finish(session, order1, teams[0].id)
    _finish(session, order2, teams[2].id)

    apply_advancement_for_finished_match(session, order1.id)
    session.refresh(order3)
    assert order3.team1_id == teams[1].id
    assert order3.team2_id == teams[2].id


def test_resolve_all_dependencies(session: Session):
    tournament, teams = start_tournament(session, 4)
    order1, order2, _, _ = _group_matches(session, tournament.id)
    _finish(session, order1, teams[0].id)
    _finish(session, order2, teams[2].id)

    first = resolve_all_dependencies(session, tournament.id)
    assert first == {"matches_processed": 2, "teams_advanced": 4, "unknown_before": 2, "unknown_after": 0}

    second = resolve_all_dependencies(session, tournament.id)
    assert second["teams_advanced"] == 0
    assert second["unknown_after"] == 0
