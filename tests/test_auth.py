"""Tests for auth.py — JSON login, logout and current user."""

from __future__ import annotations


def _signup(client, username="penny", password="Sparkle123", role="student"):
    return client.post("/api/users", json={
        "username": username, "password": password, "role": role, "displayName": "Penny",
    })


class TestLogin:
    def test_password_hashed_on_signup(self, client, app_storage):
        _signup(client)
        stored = app_storage.get_user_by_username("penny")
        assert stored.password_hash
        assert stored.password_hash != "Sparkle123"

    def test_short_password_rejected(self, client):
        resp = _signup(client, password="short")
        assert resp.status_code == 400

    def test_login_and_me(self, client):
        _signup(client)
        resp = client.post("/api/login", json={"username": "penny", "password": "Sparkle123"})
        assert resp.status_code == 200
        assert resp.get_json()["username"] == "penny"

        me = client.get("/api/me").get_json()
        assert me["user"]["displayName"] == "Penny"
        assert me["profile"] is None

    def test_me_includes_profile(self, client):
        user = _signup(client).get_json()
        client.post("/api/students/profile", json={"userId": user["id"]})
        client.post("/api/login", json={"username": "penny", "password": "Sparkle123"})
        assert client.get("/api/me").get_json()["profile"]["userId"] == user["id"]

    def test_wrong_password(self, client):
        _signup(client)
        resp = client.post("/api/login", json={"username": "penny", "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.get_json() == {"message": "Invalid username or password"}

    def test_unknown_user(self, client):
        resp = client.post("/api/login", json={"username": "ghost", "password": "whatever1"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        resp = client.post("/api/login", json={"username": "penny"})
        assert resp.status_code == 400


class TestSession:
    def test_me_requires_login(self, client):
        resp = client.get("/api/me")
        assert resp.status_code == 401
        assert resp.get_json() == {"message": "Authentication required"}

    def test_logout(self, client):
        _signup(client)
        client.post("/api/login", json={"username": "penny", "password": "Sparkle123"})
        assert client.post("/api/logout").status_code == 200
        assert client.get("/api/me").status_code == 401
