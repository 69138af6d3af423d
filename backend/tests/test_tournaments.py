from fastapi.testclient import TestClient


def test_create_and_fetch_tournament(client: TestClient):
    resp = client.post("/api/tournaments", json={"name": "  Winter Cup ", "round_delay_days": 2})
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Winter Cup"
    assert data["status"] == "upcoming"
    assert data["round_delay_days"] == 2

    resp = client.get(f"/api/tournaments/{data['id']}")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Winter Cup"

    assert [t["id"] for t in client.get("/api/tournaments").json()] == [data["id"]]


def test_tournament_validation(client: TestClient):
    assert client.post("/api/tournaments", json={"name": "  "}).status_code == 422
    assert client.post("/api/tournaments", json={"name": "Cup", "status": "paused"}).status_code == 422
    assert client.get("/api/tournaments/9999").status_code == 404


def test_update_tournament(client: TestClient):
    tid = client.post("/api/tournaments", json={"name": "Cup"}).json()["id"]

    resp = client.patch(f"/api/tournaments/{tid}", json={"status": "active", "round_delay_days": 4})
    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    assert resp.json()["round_delay_days"] == 4
    assert resp.json()["name"] == "Cup"

    assert client.patch("/api/tournaments/9999", json={"name": "x"}).status_code == 404


def test_participants(client: TestClient):
    resp = client.post("/api/participants", json={"name": "Ada", "email": "ada@example.com"})
    assert resp.status_code == 201
    assert resp.json()["name"] == "Ada"

    assert client.post("/api/participants", json={"name": " "}).status_code == 422
    assert [p["name"] for p in client.get("/api/participants").json()] == ["Ada"]


def test_health(client: TestClient):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_created_at_defaults_are_utc_aware():
    from arena.models.participant import Participant
    from arena.models.tournament import Tournament
    from arena.models.tournament_battle import TournamentBattle

    for record in (Tournament(name="Cup"), Participant(name="Ada"), TournamentBattle(tournament_id=1, round=1)):
        assert record.created_at.tzinfo is not None
        assert record.created_at.utcoffset().total_seconds() == 0
