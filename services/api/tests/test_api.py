"""
Integration tests for the FastAPI endpoints.
"""

import pytest
from fastapi.testclient import TestClient

import shelffeed.main
from conftest import make_test_engine
from shelffeed.clients import redis_client
from shelffeed.database import get_store, init_db, make_sessionmaker
from shelffeed.main import app
from shelffeed.store import DataStore


def as_user(user_id):
    return {"X-User-Id": user_id}


@pytest.fixture
def client(tmp_path, monkeypatch):
    """A TestClient over a temporary SQLite database, without Redis."""
    engine = make_test_engine(tmp_path / "api.db")
    test_store = DataStore(make_sessionmaker(engine))

    async def fake_init_db():
        await init_db(engine)

    async def fake_init_redis():
        return None

    monkeypatch.setattr(shelffeed.main, "init_db", fake_init_db)
    monkeypatch.setattr(shelffeed.main, "init_redis", fake_init_redis)
    app.dependency_overrides[get_store] = lambda: test_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(client, user_id, username, display_name=None):
    resp = client.put(
        "/users/me",
        json={"username": username, "display_name": display_name},
        headers=as_user(user_id),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health_endpoint(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_unauthenticated_feed_redirects_to_sign_in(client):
    resp = client.get("/feed")

    assert resp.status_code == 401
    assert resp.headers["location"] == "/auth"


def test_new_user_feed_shows_joined_post(client):
    make_user(client, "u1", "reader")

    body = client.get("/feed", headers=as_user("u1")).json()

    assert body["empty"] is False
    assert [item["kind"] for item in body["items"]] == ["user_joined"]
    assert body["items"][0]["author"]["username"] == "reader"


def test_follow_is_idempotent_over_http(client):
    make_user(client, "u1", "alice")
    make_user(client, "u2", "bob")

    for _ in range(2):
        resp = client.post("/users/u2/follow", headers=as_user("u1"))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": "u2", "following": True}

    profile = client.get("/users/bob", headers=as_user("u1")).json()
    assert profile["stats"]["followers"] == 1
    assert profile["is_following"] is True


def test_self_follow_is_rejected(client):
    make_user(client, "u1", "alice")

    resp = client.post("/users/u1/follow", headers=as_user("u1"))

    assert resp.status_code == 400
    assert client.get("/users/u1/follow", headers=as_user("u1")).json()["following"] is False


def test_unfollow_without_edge_is_ok(client):
    resp = client.delete("/users/u9/follow", headers=as_user("u1"))

    assert resp.status_code == 200
    assert resp.json()["following"] is False


def test_feed_and_activity_flow(client):
    make_user(client, "u1", "alice", "Alice")
    make_user(client, "u2", "bob", "Bob")
    client.post("/users/u2/follow", headers=as_user("u1"))
    client.put("/papers/W1", json={"title": "Deep Reading", "authors": ["X"]}, headers=as_user("u2"))
    assert client.post("/library", json={"paper_id": "W1", "status": "reading"}, headers=as_user("u2")).status_code == 201

    feed = client.get("/feed", headers=as_user("u1")).json()
    shelved = [i for i in feed["items"] if i["kind"] == "added_to_library"]
    assert len(shelved) == 1
    assert shelved[0]["paper"]["title"] == "Deep Reading"
    assert shelved[0]["user_id"] == "u2"

    liked = client.post(f"/posts/{shelved[0]['post_id']}/like", headers=as_user("u1")).json()
    assert liked == {"post_id": shelved[0]["post_id"], "liked": True, "like_count": 1}

    activity = client.get("/activity", headers=as_user("u2")).json()
    assert [i["kind"] for i in activity["items"]] == ["post_liked", "user_followed"]
    assert activity["items"][0]["paper"]["title"] == "Deep Reading"
    assert {i["actor_id"] for i in activity["items"]} == {"u1"}


def test_feed_search_filters_authors(client):
    make_user(client, "u1", "alice", "Alice Adams")
    make_user(client, "u2", "jsmith", "Jonathan Smith")
    client.post("/users/u2/follow", headers=as_user("u1"))

    body = client.get("/feed", params={"q": "jsmith"}, headers=as_user("u1")).json()

    assert {i["user_id"] for i in body["items"]} == {"u2"}
    assert body["query"] == "jsmith"


def test_directory_search_finds_strangers(client):
    make_user(client, "u1", "alice", "Alice Adams")
    make_user(client, "u2", "jsmith", "Jonathan Smith")

    results = client.get("/users/search", params={"q": "jsm"}, headers=as_user("u1")).json()

    assert [r["user_id"] for r in results] == ["u2"]


def test_unknown_username_is_404(client):
    assert client.get("/users/nobody").status_code == 404
    assert client.get("/users/nobody/library").status_code == 404


def test_public_library_filters_by_status(client):
    make_user(client, "u2", "bob", "Bob")
    client.put("/papers/W1", json={"title": "Deep Reading"}, headers=as_user("u2"))
    client.post("/library", json={"paper_id": "W1", "status": "read"}, headers=as_user("u2"))
    client.post("/library", json={"paper_id": "W404", "status": "to_read"}, headers=as_user("u2"))

    everything = client.get("/users/bob/library").json()
    read_only = client.get("/users/bob/library", params={"status": "read"}).json()
    unshelved = client.get("/users/bob/library", params={"status": "reading"}).json()

    assert {item["paper_id"] for item in everything} == {"W1", "W404"}
    assert next(i for i in everything if i["paper_id"] == "W404")["paper"] is None
    assert [(i["paper_id"], i["paper"]["title"]) for i in read_only] == [("W1", "Deep Reading")]
    assert unshelved == []


def test_invalid_username_is_rejected(client):
    resp = client.put("/users/me", json={"username": "No Spaces!"}, headers=as_user("u1"))

    assert resp.status_code == 422


def test_taken_username_conflicts(client):
    make_user(client, "u1", "alice")

    resp = client.put("/users/me", json={"username": "alice"}, headers=as_user("u2"))

    assert resp.status_code == 409


def test_like_missing_post_is_404(client):
    assert client.post("/posts/nope/like", headers=as_user("u1")).status_code == 404


def test_delete_me_then_feed_is_empty(client):
    make_user(client, "u1", "alice")

    assert client.delete("/users/me", headers=as_user("u1")).status_code == 204

    body = client.get("/feed", headers=as_user("u1")).json()
    assert body["items"] == []
    assert body["empty"] is True


def test_superseded_feed_answers_conflict(client, monkeypatch):
    generations = {}

    async def next_generation(feed, user_id):
        generations[user_id] = generations.get(user_id, 0) + 1
        return generations[user_id]

    async def current_generation(feed, user_id):
        return generations.get(user_id, 0)

    async def slow_feed(store, viewer_id, query=None):
        # A newer request from the same viewer arrives mid-assembly
        await next_generation("following", viewer_id)
        return []

    monkeypatch.setattr(redis_client, "next_generation", next_generation)
    monkeypatch.setattr(redis_client, "current_generation", current_generation)
    monkeypatch.setattr("shelffeed.routers.feed.assemble_feed", slow_feed)

    resp = client.get("/feed", headers=as_user("u1"))

    assert resp.status_code == 409
