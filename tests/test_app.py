import importlib
from unittest import mock

import pytest

from conftest import LOSING_BOARD, NO_MOVES_BOARD
from engine.config import GameConfig


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("POSTGRES_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    app_module = importlib.import_module("app")
    monkeypatch.setattr(app_module, "session", app_module.GameSession(GameConfig()))
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as test_client:
        yield test_client


def start(client, seed=99):
    response = client.post("/init", json={"seed": seed})
    assert response.status_code == 200
    return response.get_json()


def test_init_returns_a_fresh_board(client):
    data = start(client)
    tiles = [value for row in data["board"] for value in row if value]
    assert len(tiles) == 2
    assert data["score"] == 0
    assert data["moves"] == 0
    assert data["status"] == "active"
    assert not data["game_over"]
    assert [event["type"] for event in data["events"]] == ["GameStarted", "TileSpawned", "TileSpawned"]


def test_same_seed_same_board(client):
    first = start(client, seed=5)["board"]
    second = start(client, seed=5)["board"]
    assert first == second


def test_init_rejects_bad_seed(client):
    response = client.post("/init", json={"seed": -3})
    assert response.status_code == 400


def test_move_before_init_is_a_conflict(client):
    response = client.post("/move", json={"direction": "left"})
    assert response.status_code == 409


def test_move_requires_a_direction(client):
    start(client)
    assert client.post("/move", json={}).status_code == 400
    assert client.post("/move", json={"direction": "sideways"}).status_code == 400


def test_moves_until_the_board_changes(client):
    start(client)
    for direction in ("left", "up", "right", "down"):
        data = client.post("/move", json={"direction": direction}).get_json()
        if data["moved"]:
            break
    assert data["moved"]
    assert data["moves"] == 1
    assert data["can_undo"]
    assert data["events"][-1]["type"] == "MoveMade"

    undone = client.post("/undo").get_json()
    assert undone["moves"] == 0
    assert not undone["can_undo"]


def test_action_index_is_accepted(client):
    start(client)
    response = client.post("/move", json={"action": 0})
    assert response.status_code == 200


def test_undo_without_history_is_a_conflict(client):
    start(client)
    assert client.post("/undo").status_code == 409


def test_end_then_move_is_a_conflict(client):
    start(client)
    data = client.post("/end").get_json()
    assert data["game_over"]
    assert data["events"][0]["reason"] == "abandoned"
    assert client.post("/move", json={"direction": "left"}).status_code == 409


def test_snapshot_and_restore(client):
    start(client, seed=11)
    saved = client.get("/snapshot").get_json()
    start(client, seed=12)

    response = client.post("/restore", json=saved)
    assert response.status_code == 200
    assert client.get("/snapshot").get_json() == saved


def test_restore_rejects_invalid_snapshots(client):
    start(client)
    saved = client.get("/snapshot").get_json()
    assert client.post("/restore", json={}).status_code == 400

    saved["board"] = [3] + saved["board"][1:]
    response = client.post("/restore", json=saved)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_stats_follow_played_games(client):
    start(client, seed=1)
    start(client, seed=2)
    data = client.get("/stats").get_json()
    assert data["statistics"]["games_played"] == 2
    assert data["statistics"]["completed_games"] == 1
    assert "session_seconds" in data["statistics"]
    assert data["achievements"] == []


def restore_payload(client, rows, score):
    payload = client.get("/snapshot").get_json()
    payload.update(
        board=[value for row in rows for value in row],
        score=score,
        highest_tile=max(max(row) for row in rows),
        status="active",
        has_won=False,
        ended=False,
    )
    return payload


def test_restore_then_loss_is_counted(client):
    start(client)
    client.post("/end")
    payload = restore_payload(client, LOSING_BOARD, score=100)

    assert client.post("/restore", json=payload).status_code == 200
    data = client.post("/move", json={"direction": "right"}).get_json()
    assert data["game_over"]
    assert data["status"] == "lost"

    statistics = client.get("/stats").get_json()["statistics"]
    assert statistics["completed_games"] == 2
    assert statistics["total_score"] == 100


def test_restore_abandons_an_unfinished_game(client):
    start(client, seed=1)
    saved = client.get("/snapshot").get_json()
    start(client, seed=2)

    data = client.post("/restore", json=saved).get_json()
    assert [event["type"] for event in data["events"]] == ["GameOver", "GameRestored"]
    assert client.get("/stats").get_json()["statistics"]["completed_games"] == 2


def test_stuck_board_is_reported_lost(client):
    start(client)
    client.post("/restore", json=restore_payload(client, NO_MOVES_BOARD, score=40))

    data = client.post("/move", json={"direction": "up"}).get_json()
    assert not data["moved"]
    assert data["game_over"]
    assert data["events"] == [{"type": "GameOver", "final_score": 40, "was_won": False, "reason": "lost"}]


def test_saved_slot_follows_the_game(client, monkeypatch):
    app_module = importlib.import_module("app")
    conn = mock.MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    monkeypatch.setattr(app_module.session, "conn", conn)

    start(client)
    assert "INSERT INTO saved_games" in cursor.execute.call_args.args[0]
    client.post("/end")
    assert "DELETE FROM saved_games" in cursor.execute.call_args.args[0]
