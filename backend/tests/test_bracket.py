"""Playoff bracket seeding, byes, round structure and persistence."""
import pytest
from sqlmodel import Session, select

from tests.factories import make_teams, make_tournament
from torneos.errors import PreconditionError
from torneos.models.match import (
    MATCH_PENDING,
    MATCH_SCHEDULED,
    PHASE_PLAYOFF,
    ROLE_WINNER,
    TournamentMatch,
)
from torneos.services.bracket import (
    ROUND_SEQUENCE,
    bracket_size,
    next_round,
    persist_bracket,
    plan_bracket,
    rank_qualifiers,
    seed_order,
    winner_label,
)
from torneos.services.standings import Qualifier


def _qualifiers(count: int):
    """Synthetic qualifiers: groups of two (1st, 2nd) with team ids 1..count"""
    return [
        Qualifier(team_id=i + 1, group_id=i // 2 + 1, group_order=i // 2 + 1, position=i % 2 + 1)
        for i in range(count)
    ]


def test_seed_order():
    assert seed_order(2) == [1, 2]
    assert seed_order(4) == [1, 4, 2, 3]
    assert seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]


@pytest.mark.parametrize("count,size", [(2, 2), (3, 4), (4, 4), (5, 8), (8, 8), (9, 16), (17, 32), (32, 32)])
def test_bracket_size(count, size):
    assert bracket_size(count) == size


def test_round_vocabulary():
    assert next_round("16avos") == "octavos"
    assert next_round("cuartos") == "semifinal"
    assert next_round("semifinal") == "final"
    assert next_round("final") is None
    with pytest.raises(ValueError):
        next_round("treintaidosavos")


def test_winner_label():
    assert winner_label("cuartos", 2) == "Ganador Cuartos2"
    assert winner_label("semifinal", 1) == "Ganador Semifinal1"


def test_rank_qualifiers_snake_order():
    qualifiers = [
        Qualifier(team_id=10 * g + p, group_id=g, group_order=g, position=p)
        for g in (1, 2, 3)
        for p in (1, 2)
    ]
    ranked = rank_qualifiers(qualifiers)
    assert [q.label for q in ranked] == ["1A", "1B", "1C", "2C", "2B", "2A"]


@pytest.mark.parametrize("count", list(range(2, 33)))
def test_round_structure(count):
    plan = plan_bracket(_qualifiers(count))
    size = plan.size
    assert plan.rounds[-1] == "final"
    assert plan.rounds == ROUND_SEQUENCE[ROUND_SEQUENCE.index(plan.rounds[0]):]

    counts = [len(plan.matches_in_round(r)) for r in plan.rounds]
    assert counts[0] == count - size // 2
    for later, expected in zip(counts[1:], [size // 2 ** (i + 2) for i in range(len(counts) - 1)]):
        assert later == expected
    assert len(plan.byes) == size - count

    for round_name in plan.rounds:
        positions = sorted(m.bracket_pos for m in plan.matches_in_round(round_name))
        assert positions == list(range(1, len(positions) + 1))


def test_two_qualifiers_play_the_final():
    plan = plan_bracket(_qualifiers(2))
    assert plan.rounds == ["final"]
    (final,) = plan.matches
    assert {final.slot1.team_id, final.slot2.team_id} == {1, 2}


def test_byes_go_to_best_ranked():
    # 3 groups x top 2: 1A, 1B, 1C, 2C, 2B, 2A -> byes for 1A and 1B
    qualifiers = [
        Qualifier(team_id=10 * g + p, group_id=g, group_order=g, position=p)
        for g in (1, 2, 3)
        for p in (1, 2)
    ]
    plan = plan_bracket(qualifiers)
    assert plan.size == 8
    assert [b.label for b in plan.byes] == ["1A", "1B"]

    cuartos = plan.matches_in_round("cuartos")
    assert [(m.slot1.label, m.slot2.label) for m in cuartos] == [("2C", "2B"), ("1C", "2A")]
    semis = plan.matches_in_round("semifinal")
    assert [(m.slot1.label, m.slot2.label) for m in semis] == [
        ("1A", "Ganador Cuartos1"),
        ("1B", "Ganador Cuartos2"),
    ]
    assert semis[0].slot1.team_id == 11
    assert semis[0].status == MATCH_PENDING
    assert semis[0].predecessors == (("cuartos", 1),)
    assert plan.unresolved_conflicts == []


def test_same_group_first_round_pairs_are_swapped():
    # 1A, 1B, 2B, 2A: seed lines 1v4 and 2v3 would be 1A-2A and 1B-2B
    qualifiers = [
        Qualifier(team_id=1, group_id=1, group_order=1, position=1),
        Qualifier(team_id=2, group_id=1, group_order=1, position=2),
        Qualifier(team_id=3, group_id=2, group_order=2, position=1),
        Qualifier(team_id=4, group_id=2, group_order=2, position=2),
    ]
    plan = plan_bracket(qualifiers)
    semis = plan.matches_in_round("semifinal")
    for match in semis:
        assert match.slot1.group_order != match.slot2.group_order
    assert plan.unresolved_conflicts == []


def test_unavoidable_same_group_pair_is_reported():
    qualifiers = [
        Qualifier(team_id=1, group_id=1, group_order=1, position=1),
        Qualifier(team_id=2, group_id=1, group_order=1, position=2),
    ]
    plan = plan_bracket(qualifiers)
    assert plan.unresolved_conflicts == [("final", 1)]


def test_later_round_potential_covers_feeder_teams():
    plan = plan_bracket(_qualifiers(4))
    (final,) = plan.matches_in_round("final")
    assert final.potential == frozenset({1, 2, 3, 4})
    assert final.predecessors == (("semifinal", 1), ("semifinal", 2))


def test_placeholder_qualifiers_plan_with_labels():
    qualifiers = [Qualifier(team_id=None, group_id=g, group_order=g, position=p) for g in (1, 2) for p in (1, 2)]
    plan = plan_bracket(qualifiers)
    rows = plan.to_dict()["matches"]
    assert all(row["status"] == MATCH_PENDING for row in rows)
    assert {rows[0]["source_team1"], rows[0]["source_team2"]} <= {"1A", "1B", "2A", "2B"}


@pytest.mark.parametrize("count", [0, 1, 33])
def test_qualifier_count_limits(count):
    with pytest.raises(PreconditionError):
        plan_bracket(_qualifiers(count))


def test_persist_bracket_wires_feeder_edges(session: Session):
    tournament = make_tournament(session)
    teams = make_teams(session, tournament, 4)
    qualifiers = [
        Qualifier(team_id=t.id, group_id=None, group_order=i // 2 + 1, position=i % 2 + 1)
        for i, t in enumerate(teams)
    ]
    created = persist_bracket(session, tournament, plan_bracket(qualifiers))
    session.commit()

    matches = session.exec(select(TournamentMatch).where(TournamentMatch.phase == PHASE_PLAYOFF)).all()
    assert len(matches) == 3

    semi1 = created[("semifinal", 1)]
    semi2 = created[("semifinal", 2)]
    final = created[("final", 1)]
    assert semi1.status == MATCH_SCHEDULED
    assert (final.team1_id, final.team2_id) == (None, None)
    assert final.status == MATCH_PENDING
    assert (final.source_match1_id, final.source_match2_id) == (semi1.id, semi2.id)
    assert final.source1_role == ROLE_WINNER
    assert final.source1_label == "Ganador Semifinal1"

    with pytest.raises(PreconditionError):
        persist_bracket(session, tournament, plan_bracket(qualifiers))
