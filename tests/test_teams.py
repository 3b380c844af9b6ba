"""
Tests for team CRUD and membership.
"""
from fastapi.testclient import TestClient


def _player(client: TestClient, name: str, team_id=None) -> int:
    body = {"full_name": name}
    if team_id is not None:
        body["team_id"] = team_id
    r = client.post("/api/players", json=body)
    assert r.status_code == 201, r.text
    return r.json()["id"]


def test_create_and_list_teams(client: TestClient):
    r = client.post("/api/teams", json={"name": " Smashers ", "color": "#00f"})
    assert r.status_code == 201
    team = r.json()
    assert team["name"] == "Smashers"
    assert team["players"] == []

    _player(client, "Zoe", team["id"])
    _player(client, "Ada", team["id"])

    teams = client.get("/api/teams").json()
    assert len(teams) == 1
    assert [p["full_name"] for p in teams[0]["players"]] == ["Ada", "Zoe"]


def test_create_team_requires_name(client: TestClient):
    assert client.post("/api/teams", json={"name": "  "}).status_code == 422


def test_player_with_unknown_team(client: TestClient):
    assert client.post("/api/players", json={"full_name": "Lost", "team_id": 9999}).status_code == 404


def test_update_team(client: TestClient):
    team_id = client.post("/api/teams", json={"name": "Old"}).json()["id"]
    assert client.patch(f"/api/teams/{team_id}", json={}).status_code == 400
    assert client.patch(f"/api/teams/{team_id}", json={"name": ""}).status_code == 400

    r = client.patch(f"/api/teams/{team_id}", json={"name": "New", "color": "red"})
    assert r.status_code == 200
    assert r.json()["name"] == "New"
    assert r.json()["color"] == "red"

    assert client.patch("/api/teams/9999", json={"name": "X"}).status_code == 404


def test_set_members_replaces_roster(client: TestClient):
    team_id = client.post("/api/teams", json={"name": "Roster"}).json()["id"]
    a = _player(client, "A", team_id)
    b = _player(client, "B")
    c = _player(client, "C")

    r = client.post(f"/api/teams/{team_id}/members", json={"player_ids": [b, c, c]})
    assert r.status_code == 200
    assert sorted(p["id"] for p in r.json()["players"]) == [b, c]

    players = {p["id"]: p for p in client.get("/api/players").json()}
    assert players[a]["team_id"] is None
    assert players[b]["team_id"] == team_id

    assert client.post(f"/api/teams/{team_id}/members", json={"player_ids": [b, 9999]}).status_code == 404


def test_delete_team_detaches_players(client: TestClient):
    team_id = client.post("/api/teams", json={"name": "Gone"}).json()["id"]
    pid = _player(client, "Solo", team_id)

    assert client.delete(f"/api/teams/{team_id}").status_code == 204
    assert client.get("/api/teams").json() == []
    assert client.delete(f"/api/teams/{team_id}").status_code == 404

    players = {p["id"]: p for p in client.get("/api/players").json()}
    assert players[pid]["team_id"] is None
