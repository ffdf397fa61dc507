from fastapi.testclient import TestClient

from tests.factories import day_schedule


def _started(client: TestClient, team_count: int, close_review: bool = True) -> int:
    tournament_id = client.post("/api/tournaments", json={"name": "Torneo Apertura"}).json()["id"]
    for i in range(team_count):
        client.post(
            f"/api/tournaments/{tournament_id}/teams",
            json={"player1_id": 100 + 2 * i, "player2_id": 101 + 2 * i},
        )
    client.post(f"/api/tournaments/{tournament_id}/close-registration", json={"schedule": day_schedule()})
    if close_review:
        client.post(f"/api/tournaments/{tournament_id}/close-schedule-review")
    return tournament_id


def _group_matches(client: TestClient, tournament_id: int):
    return client.get(f"/api/tournaments/{tournament_id}/matches", params={"phase": "group"}).json()


def _slot(match):
    return (match["match_date"], match["start_time"], match["end_time"], match["court_id"])


def test_matches_with_results_keep_their_slot(client: TestClient):
    tournament_id = _started(client, 6)
    played = _group_matches(client, tournament_id)[0]
    client.post(f"/api/matches/{played['id']}/result", json={"sets": [[6, 1], [6, 1]]})

    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": day_schedule(day="2026-03-08")},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["assigned_count"] == 5
    assert played["id"] not in {row["match_id"] for row in data["schedule"]}

    matches = {m["id"]: m for m in _group_matches(client, tournament_id)}
    assert _slot(matches[played["id"]]) == _slot(played)
    others = [m for m in matches.values() if m["id"] != played["id"]]
    assert all(m["match_date"] == "2026-03-08" for m in others)


def test_regenerate_during_schedule_review(client: TestClient):
    tournament_id = _started(client, 3, close_review=False)
    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": day_schedule(start="15:00", end="18:00", courts=(4,))},
    )
    assert response.status_code == 200
    starts = sorted(m["start_time"] for m in _group_matches(client, tournament_id))
    assert starts == ["15:00:00", "16:00:00", "17:00:00"]
    assert {m["court_id"] for m in _group_matches(client, tournament_id)} == {4}


def test_deferred_group_matches_follow_their_feeders(client: TestClient):
    tournament_id = _started(client, 4)
    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": day_schedule(courts=(1, 2, 3))},
    )
    assert response.status_code == 200

    order1, order2, order3, order4 = _group_matches(client, tournament_id)
    latest_feeder_end = max(order1["end_time"], order2["end_time"])
    assert order3["start_time"] >= latest_feeder_end
    assert order4["start_time"] >= latest_feeder_end


def test_invalid_configuration_changes_nothing(client: TestClient):
    tournament_id = _started(client, 3)
    before = [_slot(m) for m in _group_matches(client, tournament_id)]

    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": {"days": [{"date": "2026-03-08", "start_time": "09:00", "end_time": "13:00"}], "court_ids": []}},
    )
    assert response.status_code == 422
    assert [_slot(m) for m in _group_matches(client, tournament_id)] == before


def test_unknown_phase_rejected(client: TestClient):
    tournament_id = _started(client, 3)
    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": day_schedule(), "phase": "friendlies"},
    )
    assert response.status_code == 422


def test_nothing_to_schedule(client: TestClient):
    tournament_id = _started(client, 3)
    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": day_schedule(), "phase": "playoff"},
    )
    assert response.status_code == 400


def test_capacity_failure_leaves_targets_unscheduled(client: TestClient):
    tournament_id = _started(client, 3)
    played = _group_matches(client, tournament_id)[0]
    client.post(f"/api/matches/{played['id']}/result", json={"sets": [[6, 1], [6, 1]]})

    response = client.post(
        f"/api/tournaments/{tournament_id}/regenerate-schedule",
        json={"schedule": day_schedule(start="09:00", end="10:00", courts=(1,))},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["slots_needed"] == 2

    matches = {m["id"]: m for m in _group_matches(client, tournament_id)}
    assert _slot(matches[played["id"]]) == _slot(played)
    assert all(m["match_date"] is None for mid, m in matches.items() if mid != played["id"])
