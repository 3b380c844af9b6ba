"""Session lifecycle, check-in, rankings and team standings."""
from datetime import datetime

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from courtqueue.models.court import Court
from courtqueue.models.match import Match, MatchParticipant
from courtqueue.models.play_session import PlaySession
from courtqueue.models.player import Player
from courtqueue.models.session_player import SessionPlayer
from courtqueue.models.team import Team


def test_health(client: TestClient):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_create_session_defaults(client: TestClient):
    r = client.post("/api/sessions", json={"name": "  Friday Social "})
    assert r.status_code == 201
    data = r.json()
    assert data["name"] == "Friday Social"
    assert data["status"] == "draft"
    assert data["mode"] == "usual"
    assert data["game_type"] == "doubles"
    assert data["return_to_queue"] is True


def test_create_session_validation(client: TestClient):
    assert client.post("/api/sessions", json={"name": ""}).status_code == 422
    assert client.post("/api/sessions", json={"name": "X", "mode": "ladder"}).status_code == 422
    r = client.post(
        "/api/sessions",
        json={"name": "X", "starts_at": "2026-05-01T20:00:00", "ends_at": "2026-05-01T18:00:00"},
    )
    assert r.status_code == 422


def test_open_creates_court_slots_for_active_courts(client: TestClient):
    client.post("/api/courts", json={"name": "Court 1"})
    client.post("/api/courts", json={"name": "Court 2"})
    client.post("/api/courts", json={"name": "Closed", "active": False})
    sid = client.post("/api/sessions", json={"name": "Open Me"}).json()["id"]

    r = client.post(f"/api/sessions/{sid}/open")
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "open"
    assert sorted(cs["court_name"] for cs in data["court_sessions"]) == ["Court 1", "Court 2"]
    assert all(cs["status"] == "available" for cs in data["court_sessions"])

    again = client.post(f"/api/sessions/{sid}/open").json()
    assert len(again["court_sessions"]) == 2

    active = client.get("/api/sessions/active").json()
    assert active["id"] == sid


def test_close_and_delete(client: TestClient):
    sid = client.post("/api/sessions", json={"name": "Short"}).json()["id"]
    client.post(f"/api/sessions/{sid}/open")
    assert client.delete(f"/api/sessions/{sid}").status_code == 409

    r = client.post(f"/api/sessions/{sid}/close")
    assert r.status_code == 200
    assert r.json()["status"] == "closed"
    assert r.json()["closed_at"] is not None

    assert client.delete(f"/api/sessions/{sid}").status_code == 204
    assert client.get(f"/api/sessions/{sid}").status_code == 404


def test_list_sessions_by_status(client: TestClient):
    draft = client.post("/api/sessions", json={"name": "Draft"}).json()["id"]
    opened = client.post("/api/sessions", json={"name": "Open"}).json()["id"]
    client.post(f"/api/sessions/{opened}/open")

    ids = [s["id"] for s in client.get("/api/sessions", params={"status": "draft"}).json()]
    assert ids == [draft]
    assert len(client.get("/api/sessions").json()) == 2


def test_patch_session(client: TestClient):
    sid = client.post("/api/sessions", json={"name": "Patch"}).json()["id"]
    assert client.patch(f"/api/sessions/{sid}", json={}).status_code == 400

    r = client.patch(f"/api/sessions/{sid}", json={"mode": "tournament", "game_type": "singles"})
    assert r.status_code == 200
    assert r.json()["mode"] == "tournament"
    assert r.json()["game_type"] == "singles"

    assert client.patch("/api/sessions/9999", json={"name": "Nope"}).status_code == 404


def test_check_in_flow(client: TestClient):
    sid = client.post("/api/sessions", json={"name": "Check In"}).json()["id"]
    pid = client.post("/api/players", json={"full_name": "Ana"}).json()["id"]

    r = client.put(f"/api/sessions/{sid}/players/{pid}", json={"status": "checked_in"})
    assert r.status_code == 200
    assert r.json()["status"] == "checked_in"
    assert r.json()["games_played"] == 0

    r = client.put(f"/api/sessions/{sid}/players/{pid}", json={"status": "checked_out"})
    assert r.json()["status"] == "checked_out"
    assert len(client.get(f"/api/sessions/{sid}/players").json()) == 1

    assert client.put(f"/api/sessions/{sid}/players/9999", json={"status": "checked_in"}).status_code == 404
    assert client.put(f"/api/sessions/{sid}/players/{pid}", json={"status": "playing"}).status_code == 422


def test_rankings_order(client: TestClient, session: Session):
    play_session = PlaySession(name="Ranked")
    session.add(play_session)
    session.commit()
    session.refresh(play_session)

    rows = [
        ("Zed", 4, 3, 1),  # 0.75
        ("Amy", 2, 1, 1),  # 0.50
        ("Bob", 4, 2, 2),  # 0.50, more wins than Amy
        ("Cat", 0, 0, 0),
        ("Abe", 4, 3, 1),  # ties Zed, name first
    ]
    for name, games, wins, losses in rows:
        player = Player(full_name=name)
        session.add(player)
        session.commit()
        session.refresh(player)
        session.add(
            SessionPlayer(
                session_id=play_session.id,
                player_id=player.id,
                status="checked_in",
                games_played=games,
                wins=wins,
                losses=losses,
            )
        )
    session.commit()

    r = client.get(f"/api/sessions/{play_session.id}/rankings")
    assert r.status_code == 200
    data = r.json()
    assert data["total_players"] == 5
    assert [p["full_name"] for p in data["players"]] == ["Abe", "Zed", "Bob", "Amy", "Cat"]
    assert [p["rank"] for p in data["players"]] == [1, 2, 3, 4, 5]
    assert data["players"][0]["win_pct"] == 0.75
    assert data["players"][-1]["win_pct"] == 0


def _ended_match(session: Session, session_id: int, court_id: int, side1, side2, winner):
    """side1/side2: list of (player_id, team_id)."""
    match = Match(
        session_id=session_id,
        court_id=court_id,
        match_type="doubles",
        status="ended",
        winner_team=winner,
        ended_at=datetime.utcnow(),
    )
    session.add(match)
    session.commit()
    session.refresh(match)
    for number, side in ((1, side1), (2, side2)):
        for player_id, team_id in side:
            session.add(MatchParticipant(match_id=match.id, player_id=player_id, team_number=number, team_id=team_id))
    session.commit()
    return match


def test_team_stats(client: TestClient, session: Session):
    court = Court(name="Center")
    red, blue, gold = Team(name="Red", color="#f00"), Team(name="Blue"), Team(name="Gold")
    play_session = PlaySession(name="Cup", mode="tournament")
    session.add_all([court, red, blue, gold, play_session])
    session.commit()
    for obj in (court, red, blue, gold, play_session):
        session.refresh(obj)

    players = [Player(full_name=f"P{i}") for i in range(6)]
    session.add_all(players)
    session.commit()
    ids = [p.id for p in session.exec(select(Player).order_by(Player.id)).all()]

    sid = play_session.id
    _ended_match(session, sid, court.id, [(ids[0], red.id), (ids[1], red.id)], [(ids[2], blue.id), (ids[3], blue.id)], 1)
    _ended_match(session, sid, court.id, [(ids[4], gold.id), (ids[5], gold.id)], [(ids[2], blue.id), (ids[3], blue.id)], 2)
    _ended_match(session, sid, court.id, [(ids[0], red.id), (ids[1], red.id)], [(ids[4], gold.id), (ids[5], gold.id)], 1)
    # Skipped: same team on both sides, mixed side, no winner
    _ended_match(session, sid, court.id, [(ids[0], red.id)], [(ids[1], red.id)], 1)
    _ended_match(session, sid, court.id, [(ids[0], red.id), (ids[2], blue.id)], [(ids[4], gold.id)], 2)
    _ended_match(session, sid, court.id, [(ids[0], red.id)], [(ids[2], blue.id)], None)

    r = client.get(f"/api/sessions/{sid}/team-stats")
    assert r.status_code == 200
    data = r.json()
    assert data["scope"] == "session"
    assert data["total_teams"] == 3
    table = {t["name"]: t for t in data["teams"]}

    assert (table["Red"]["wins"], table["Red"]["losses"], table["Red"]["points"]) == (2, 0, 20)
    assert (table["Blue"]["wins"], table["Blue"]["losses"], table["Blue"]["points"]) == (1, 1, 16)
    assert (table["Gold"]["wins"], table["Gold"]["losses"], table["Gold"]["points"]) == (0, 2, 12)
    assert [t["name"] for t in data["teams"]] == ["Red", "Blue", "Gold"]
    assert data["champion"]["name"] == "Red"
    assert data["champion"]["color"] == "#f00"
    assert table["Blue"]["win_pct"] == 0.5


def test_team_stats_usual_session_is_empty(client: TestClient):
    sid = client.post("/api/sessions", json={"name": "Casual"}).json()["id"]
    data = client.get(f"/api/sessions/{sid}/team-stats", params={"scope": "all"}).json()
    assert data == {
        "session_id": sid,
        "scope": "all",
        "mode": "usual",
        "total_teams": 0,
        "teams": [],
        "champion": None,
    }
