from fastapi.testclient import TestClient


def _tournament(client: TestClient) -> int:
    return client.post("/api/tournaments", json={"name": "Torneo Apertura"}).json()["id"]


def _register(client: TestClient, tournament_id: int, player1: int, player2: int, **extra):
    payload = {"player1_id": player1, "player2_id": player2}
    payload.update(extra)
    return client.post(f"/api/tournaments/{tournament_id}/teams", json=payload)


def test_registration_order_is_kept(client: TestClient):
    tournament_id = _tournament(client)
    for i in range(3):
        assert _register(client, tournament_id, 10 + 2 * i, 11 + 2 * i).status_code == 201

    teams = client.get(f"/api/tournaments/{tournament_id}/teams").json()
    assert [t["display_order"] for t in teams] == [1, 2, 3]
    assert [t["player1_id"] for t in teams] == [10, 12, 14]


def test_same_pair_cannot_register_twice(client: TestClient):
    tournament_id = _tournament(client)
    assert _register(client, tournament_id, 1, 2).status_code == 201
    assert _register(client, tournament_id, 1, 2).status_code == 409


def test_team_needs_two_players(client: TestClient):
    tournament_id = _tournament(client)
    assert _register(client, tournament_id, 1, 1).status_code == 422


def test_remove_team_while_registration_open(client: TestClient):
    tournament_id = _tournament(client)
    team_id = _register(client, tournament_id, 1, 2).json()["id"]

    assert client.delete(f"/api/tournaments/{tournament_id}/teams/{team_id}").status_code == 204
    assert client.get(f"/api/tournaments/{tournament_id}/teams").json() == []


def test_registration_closed_after_groups_form(client: TestClient):
    tournament_id = _tournament(client)
    for i in range(3):
        _register(client, tournament_id, 10 + 2 * i, 11 + 2 * i)
    assert client.post(f"/api/tournaments/{tournament_id}/close-registration").status_code == 200

    assert _register(client, tournament_id, 50, 51).status_code == 400


def test_restrictions_crud(client: TestClient):
    tournament_id = _tournament(client)
    team_id = _register(client, tournament_id, 1, 2).json()["id"]

    response = client.post(
        f"/api/teams/{team_id}/restrictions",
        json={"day_date": "2026-03-07", "start_time": "09:00", "end_time": "11:00"},
    )
    assert response.status_code == 201
    restriction_id = response.json()["id"]

    listed = client.get(f"/api/teams/{team_id}/restrictions").json()
    assert [r["id"] for r in listed] == [restriction_id]

    assert client.delete(f"/api/restrictions/{restriction_id}").status_code == 204
    assert client.get(f"/api/teams/{team_id}/restrictions").json() == []


def test_restriction_until_midnight_is_valid(client: TestClient):
    tournament_id = _tournament(client)
    team_id = _register(client, tournament_id, 1, 2).json()["id"]
    response = client.post(
        f"/api/teams/{team_id}/restrictions",
        json={"day_date": "2026-03-07", "start_time": "20:00", "end_time": "00:00"},
    )
    assert response.status_code == 201


def test_inverted_restriction_rejected(client: TestClient):
    tournament_id = _tournament(client)
    team_id = _register(client, tournament_id, 1, 2).json()["id"]
    response = client.post(
        f"/api/teams/{team_id}/restrictions",
        json={"day_date": "2026-03-07", "start_time": "11:00", "end_time": "09:00"},
    )
    assert response.status_code == 422
