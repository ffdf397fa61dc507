"""Edits allowed while the schedule is under review: swaps and manual slots."""
from fastapi.testclient import TestClient

from tests.factories import day_schedule


def _review(client: TestClient, team_count: int) -> int:
    """Tournament with groups formed and scheduled, still in schedule review"""
    tournament_id = client.post("/api/tournaments", json={"name": "Torneo Apertura"}).json()["id"]
    for i in range(team_count):
        client.post(
            f"/api/tournaments/{tournament_id}/teams",
            json={"player1_id": 100 + 2 * i, "player2_id": 101 + 2 * i},
        )
    response = client.post(f"/api/tournaments/{tournament_id}/close-registration", json={"schedule": day_schedule()})
    assert response.status_code == 200, response.text
    return tournament_id


def _groups(client: TestClient, tournament_id: int):
    return client.get(f"/api/tournaments/{tournament_id}/groups").json()


def _slot(match):
    return (match["match_date"], match["start_time"], match["end_time"], match["court_id"])


def _pairs(group):
    return [(m["team1_id"], m["team2_id"]) for m in group["matches"]]


def test_swap_teams_between_groups(client: TestClient):
    tournament_id = _review(client, 6)
    zona_a, zona_b = _groups(client, tournament_id)
    a1, b1 = zona_a["team_ids"][0], zona_b["team_ids"][0]

    response = client.post(
        f"/api/tournaments/{tournament_id}/swap-teams",
        json={"team1_id": a1, "group1_id": zona_a["id"], "team2_id": b1, "group2_id": zona_b["id"]},
    )
    assert response.status_code == 200, response.text
    assert response.json()["matches_updated"] == 4

    after_a, after_b = _groups(client, tournament_id)
    assert after_a["team_ids"] == [b1] + zona_a["team_ids"][1:]
    assert after_b["team_ids"] == [a1] + zona_b["team_ids"][1:]
    swap = {a1: b1, b1: a1}
    assert _pairs(after_a) == [(swap.get(t1, t1), swap.get(t2, t2)) for t1, t2 in _pairs(zona_a)]
    assert [_slot(m) for m in after_a["matches"]] == [_slot(m) for m in zona_a["matches"]]


def test_swap_teams_inside_one_group(client: TestClient):
    tournament_id = _review(client, 4)
    (zona,) = _groups(client, tournament_id)
    t0, t1, t2, t3 = zona["team_ids"]

    response = client.post(
        f"/api/tournaments/{tournament_id}/swap-teams",
        json={"team1_id": t0, "group1_id": zona["id"], "team2_id": t1, "group2_id": zona["id"]},
    )
    assert response.status_code == 200
    assert response.json()["matches_updated"] == 2

    (after,) = _groups(client, tournament_id)
    assert after["team_ids"] == [t1, t0, t2, t3]
    assert _pairs(after)[:2] == [(t1, t3), (t0, t2)]


def test_swap_teams_rejects_bad_input(client: TestClient):
    tournament_id = _review(client, 6)
    zona_a, zona_b = _groups(client, tournament_id)
    a1, b1 = zona_a["team_ids"][0], zona_b["team_ids"][0]
    url = f"/api/tournaments/{tournament_id}/swap-teams"

    wrong_group = {"team1_id": a1, "group1_id": zona_b["id"], "team2_id": b1, "group2_id": zona_b["id"]}
    assert client.post(url, json=wrong_group).status_code == 422
    same_team = {"team1_id": a1, "group1_id": zona_a["id"], "team2_id": a1, "group2_id": zona_a["id"]}
    assert client.post(url, json=same_team).status_code == 422
    missing_group = {"team1_id": a1, "group1_id": zona_a["id"], "team2_id": b1, "group2_id": 9999}
    assert client.post(url, json=missing_group).status_code == 404

    client.post(f"/api/tournaments/{tournament_id}/close-schedule-review")
    valid = {"team1_id": a1, "group1_id": zona_a["id"], "team2_id": b1, "group2_id": zona_b["id"]}
    assert client.post(url, json=valid).status_code == 400
    assert _groups(client, tournament_id)[0]["team_ids"] == zona_a["team_ids"]


def test_swap_group_schedules(client: TestClient):
    tournament_id = _review(client, 6)
    zona_a, zona_b = _groups(client, tournament_id)

    response = client.post(
        f"/api/tournaments/{tournament_id}/swap-groups",
        json={"group1_id": zona_a["id"], "group2_id": zona_b["id"]},
    )
    assert response.status_code == 200, response.text
    assert response.json()["swapped"] == 3

    after_a, after_b = _groups(client, tournament_id)
    assert [_slot(m) for m in after_a["matches"]] == [_slot(m) for m in zona_b["matches"]]
    assert [_slot(m) for m in after_b["matches"]] == [_slot(m) for m in zona_a["matches"]]
    assert _pairs(after_a) == _pairs(zona_a)


def test_swap_group_schedules_needs_equal_sizes(client: TestClient):
    tournament_id = _review(client, 7)
    zona_a, zona_b = _groups(client, tournament_id)
    url = f"/api/tournaments/{tournament_id}/swap-groups"

    response = client.post(url, json={"group1_id": zona_a["id"], "group2_id": zona_b["id"]})
    assert response.status_code == 400
    assert client.post(url, json={"group1_id": zona_a["id"], "group2_id": zona_a["id"]}).status_code == 422


def test_manual_slot_for_one_match(client: TestClient):
    tournament_id = _review(client, 6)
    zona_a, _ = _groups(client, tournament_id)
    second = zona_a["matches"][1]

    response = client.patch(
        f"/api/matches/{second['id']}/schedule",
        json={"match_date": "2026-03-07", "start_time": "12:00", "end_time": "13:00", "court_id": 1},
    )
    assert response.status_code == 200, response.text
    assert _slot(response.json()) == ("2026-03-07", "12:00:00", "13:00:00", 1)

    moved = client.patch(f"/api/matches/{second['id']}/schedule", json={"court_id": 4})
    assert _slot(moved.json()) == ("2026-03-07", "12:00:00", "13:00:00", 4)


def test_manual_slot_conflicts(client: TestClient):
    tournament_id = _review(client, 6)
    zona_a, zona_b = _groups(client, tournament_id)
    first, second = zona_a["matches"][0], zona_a["matches"][1]
    url = f"/api/matches/{second['id']}/schedule"

    # court 2 at 09:00 belongs to the first Zona B match
    taken_court = {"match_date": "2026-03-07", "start_time": "09:00", "end_time": "10:00", "court_id": 2}
    response = client.patch(url, json=taken_court)
    assert response.status_code == 409
    assert _slot(zona_b["matches"][0])[1:] == ("09:00:00", "10:00:00", 2)

    # both Zona A matches share a team
    same_team = dict(taken_court, court_id=3)
    assert client.patch(url, json=same_team).status_code == 409
    assert _slot(first)[1] == "09:00:00"

    assert client.patch(url, json={"court_id": None}).status_code == 422
    bad_range = dict(same_team, start_time="18:00", end_time="17:00")
    assert client.patch(url, json=bad_range).status_code == 422

    unchanged = client.get(f"/api/tournaments/{tournament_id}/matches", params={"phase": "group"}).json()
    assert _slot(next(m for m in unchanged if m["id"] == second["id"])) == _slot(second)


def test_manual_slot_respects_feeder_order(client: TestClient):
    tournament_id = _review(client, 4)
    (zona,) = _groups(client, tournament_id)
    order1, _, order3, _ = zona["matches"]

    early = {"match_date": "2026-03-07", "start_time": "09:00", "end_time": "10:00", "court_id": 3}
    assert client.patch(f"/api/matches/{order3['id']}/schedule", json=early).status_code == 409

    late = dict(early, start_time="10:00", end_time="11:00")
    assert client.patch(f"/api/matches/{order1['id']}/schedule", json=late).status_code == 409


def test_manual_slot_can_be_cleared_only_during_review(client: TestClient):
    tournament_id = _review(client, 3)
    match = _groups(client, tournament_id)[0]["matches"][0]
    url = f"/api/matches/{match['id']}/schedule"
    cleared = {"match_date": None, "start_time": None, "end_time": None, "court_id": None}

    response = client.patch(url, json=cleared)
    assert response.status_code == 200
    assert _slot(response.json()) == (None, None, None, None)

    client.post(f"/api/tournaments/{tournament_id}/close-schedule-review")
    restore = {"match_date": "2026-03-07", "start_time": "09:00", "end_time": "10:00", "court_id": 1}
    assert client.patch(url, json=restore).status_code == 400
