"""Tests for the /api/games endpoints."""

import pytest

from app.dependencies import get_optional_user
from app.main import app
from tests.mocks.models import MOCK_ADMIN, MONDAY


@pytest.fixture()
def host(register) -> dict:
    return register("user", name="Hana Host")


@pytest.fixture()
def create_game(client, turf, host):
    """Factory: POST a game on ``turf`` hosted by ``host``."""

    def _create(**overrides) -> dict:
        payload = {
            "turf_id": turf["id"],
            "date": MONDAY,
            "start_time": "18:00",
            "end_time": "19:00",
            "sport": "football",
            "format": "5v5",
            "skill_level": "intermediate",
            "max_players": 10,
            "cost_per_person": 100,
            **overrides,
        }
        resp = client.post("/api/games", json=payload, headers=host["headers"])
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


def _join(client, game, user):
    return client.post(f"/api/games/{game['id']}/join", headers=user["headers"])


class TestCreateGame:
    def test_host_is_first_player(self, create_game, host):
        game = create_game()
        assert game["host_id"] == host["user"]["id"]
        assert game["current_players"] == 1
        assert game["confirmed_players"] == []
        assert game["status"] == "open"

    def test_max_players_bounds(self, client, turf, host):
        resp = client.post(
            "/api/games",
            json={
                "turf_id": turf["id"], "date": MONDAY, "start_time": "18:00",
                "end_time": "19:00", "sport": "football", "format": "5v5",
                "max_players": 1, "cost_per_person": 0,
            },
            headers=host["headers"],
        )
        assert resp.status_code == 422

    def test_unknown_turf(self, client, host):
        resp = client.post(
            "/api/games",
            json={
                "turf_id": "nope", "date": MONDAY, "start_time": "18:00",
                "end_time": "19:00", "sport": "football", "format": "5v5",
                "max_players": 10, "cost_per_person": 0,
            },
            headers=host["headers"],
        )
        assert resp.status_code == 404


class TestJoinAndLeave:
    def test_join_public_game(self, client, create_game, player):
        game = create_game()
        resp = _join(client, game, player)
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Successfully joined the game"
        assert data["game"]["confirmed_players"] == [player["user"]["id"]]
        assert data["game"]["current_players"] == 2

    def test_join_twice(self, client, create_game, player):
        game = create_game()
        _join(client, game, player)
        resp = _join(client, game, player)
        assert resp.status_code == 400
        assert resp.json()["code"] == "already_joined"

    def test_host_cannot_join(self, client, create_game, host):
        resp = _join(client, create_game(), host)
        assert resp.status_code == 400

    def test_game_fills_then_rejects(self, client, create_game, register):
        game = create_game(max_players=3)
        a, b, c = register("user"), register("user"), register("user")
        _join(client, game, a)
        resp = _join(client, game, b)
        assert resp.json()["game"]["status"] == "full"

        resp = _join(client, game, c)
        assert resp.status_code == 400
        assert resp.json()["code"] == "game_closed"

    def test_leave_reopens(self, client, create_game, register):
        game = create_game(max_players=2)
        a = register("user")
        _join(client, game, a)
        resp = client.post(f"/api/games/{game['id']}/leave", headers=a["headers"])
        assert resp.status_code == 200
        assert resp.json()["game"]["status"] == "open"
        assert resp.json()["game"]["current_players"] == 1

        again = client.post(f"/api/games/{game['id']}/leave", headers=a["headers"])
        assert again.status_code == 400
        assert again.json()["code"] == "not_a_member"

    def test_join_unknown_game(self, client, player):
        resp = client.post("/api/games/nope/join", headers=player["headers"])
        assert resp.status_code == 404

    def test_join_requires_auth(self, client, create_game):
        game = create_game()
        assert client.post(f"/api/games/{game['id']}/join").status_code == 401


class TestPrivateGames:
    def test_request_and_approve(self, client, create_game, host, player):
        game = create_game(is_private=True)
        resp = _join(client, game, player)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Join request sent to game host"
        assert resp.json()["game"]["confirmed_players"] == []

        requests = client.get(f"/api/games/{game['id']}/join-requests", headers=host["headers"])
        assert [r["user_id"] for r in requests.json()] == [player["user"]["id"]]

        resp = client.post(
            f"/api/games/{game['id']}/join-requests/{player['user']['id']}",
            json={"approve": True},
            headers=host["headers"],
        )
        assert resp.status_code == 200
        data = resp.json()["game"]
        assert data["confirmed_players"] == [player["user"]["id"]]
        assert data["join_requests"] == []

    def test_decline(self, client, create_game, host, player):
        game = create_game(is_private=True)
        _join(client, game, player)
        resp = client.post(
            f"/api/games/{game['id']}/join-requests/{player['user']['id']}",
            json={"approve": False},
            headers=host["headers"],
        )
        assert resp.json()["message"] == "Join request declined"
        assert resp.json()["game"]["join_requests"] == []

    def test_only_host_responds(self, client, create_game, player, register):
        game = create_game(is_private=True)
        _join(client, game, player)
        stranger = register("user")
        resp = client.post(
            f"/api/games/{game['id']}/join-requests/{player['user']['id']}",
            json={"approve": True},
            headers=stranger["headers"],
        )
        assert resp.status_code == 403
        assert client.get(
            f"/api/games/{game['id']}/join-requests", headers=stranger["headers"]
        ).status_code == 403

    def test_approve_must_be_boolean(self, client, create_game, host, player):
        game = create_game(is_private=True)
        _join(client, game, player)
        resp = client.post(
            f"/api/games/{game['id']}/join-requests/{player['user']['id']}",
            json={"approve": "yes"},
            headers=host["headers"],
        )
        assert resp.status_code == 422

    def test_visibility(self, client, create_game, host, player, register):
        game = create_game(is_private=True)
        url = f"/api/games/{game['id']}"
        assert client.get(url).status_code == 403
        assert client.get(url, headers=player["headers"]).status_code == 403
        assert client.get(url, headers=host["headers"]).status_code == 200

        _join(client, game, player)
        assert client.get(url, headers=player["headers"]).status_code == 200

    def test_admin_sees_private_game(self, client, create_game):
        game = create_game(is_private=True)

        async def _admin():
            return MOCK_ADMIN

        app.dependency_overrides[get_optional_user] = _admin
        assert client.get(f"/api/games/{game['id']}").status_code == 200


class TestListGames:
    def test_only_open_public_games(self, client, create_game, player):
        public = create_game()
        create_game(is_private=True)
        full = create_game(max_players=2)
        _join(client, full, player)

        resp = client.get("/api/games")
        assert [g["id"] for g in resp.json()] == [public["id"]]

    def test_filters(self, client, create_game):
        create_game()
        assert len(client.get("/api/games", params={"sport": "football"}).json()) == 1
        assert client.get("/api/games", params={"sport": "cricket"}).json() == []
        assert len(client.get("/api/games", params={"skill_level": "intermediate"}).json()) == 1
        assert client.get("/api/games", params={"skill_level": "beginner"}).json() == []
        assert client.get("/api/games", params={"date": "2026-04-01"}).json() == []

    def test_location_filter(self, client, create_game):
        create_game()
        near = client.get("/api/games", params={"lat": 18.52, "lng": 73.85})
        assert len(near.json()) == 1
        far = client.get("/api/games", params={"lat": 28.61, "lng": 77.20})
        assert far.json() == []

    def test_my_games(self, client, create_game, host, player):
        create_game()
        create_game(is_private=True)
        assert len(client.get("/api/games/my-games", headers=host["headers"]).json()) == 2
        assert client.get("/api/games/my-games", headers=player["headers"]).json() == []


class TestHostActions:
    def test_update(self, client, create_game, host):
        game = create_game()
        resp = client.put(
            f"/api/games/{game['id']}",
            json={"notes": "Bring a white shirt", "max_players": 12},
            headers=host["headers"],
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "Game updated successfully"
        assert resp.json()["game"]["max_players"] == 12

    def test_host_clears_notes(self, client, create_game, host):
        game = create_game(notes="Bring a white shirt", description="Friendly")
        url = f"/api/games/{game['id']}"
        resp = client.put(url, json={"notes": None}, headers=host["headers"])
        assert resp.status_code == 200
        assert resp.json()["game"]["notes"] is None
        assert resp.json()["game"]["description"] == "Friendly"

    def test_non_host_cannot_update(self, client, create_game, player):
        game = create_game()
        resp = client.put(f"/api/games/{game['id']}", json={"notes": "x"}, headers=player["headers"])
        assert resp.status_code == 403

    def test_started_game_is_frozen(self, client, create_game, host):
        game = create_game()
        url = f"/api/games/{game['id']}"
        client.put(url, json={"status": "in_progress"}, headers=host["headers"])
        resp = client.put(url, json={"notes": "late change"}, headers=host["headers"])
        assert resp.status_code == 400
        assert resp.json()["code"] == "game_closed"

    def test_cancel(self, client, create_game, host, player):
        game = create_game()
        url = f"/api/games/{game['id']}"
        assert client.delete(url, headers=player["headers"]).status_code == 403

        resp = client.delete(url, headers=host["headers"])
        assert resp.status_code == 200
        assert resp.json()["game"]["status"] == "cancelled"
        assert client.delete(url, headers=host["headers"]).status_code == 400
        assert _join(client, game, player).json()["code"] == "game_closed"
