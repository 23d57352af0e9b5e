"""Tests for registration, login and bearer-token auth."""
from app.portal.db import session_scope
from app.portal.models import User


def test_register_creates_pending_member(client, seed):
    r = client.post(
        "/api/auth/register",
        json={"email": "New@Example.com", "name": "Nora New", "password": "abcdef", "groupId": seed["red"]},
    )
    assert r.status_code == 201
    user = r.json["user"]
    assert user["email"] == "new@example.com"
    assert user["role"] == "member"
    assert user["isApproved"] is False
    assert user["groupId"] == seed["red"]
    assert "passwordHash" not in user and "password_hash" not in user

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {r.json['accessToken']}"})
    assert me.status_code == 200
    assert me.json["id"] == user["id"]


def test_register_duplicate_email_is_conflict(client):
    r = client.post("/api/auth/register", json={"email": "MEMBER@example.com", "name": "Dup", "password": "abcdef"})
    assert r.status_code == 409
    assert r.json["message"] == "Email already exists"


def test_register_validation(client):
    r = client.post("/api/auth/register", json={"email": "x@example.com", "name": "X", "password": "123"})
    assert r.status_code == 400

    r = client.post("/api/auth/register", json={"email": "not-an-email", "name": "X", "password": "abcdef"})
    assert r.status_code == 400

    r = client.post(
        "/api/auth/register",
        json={"email": "x@example.com", "name": "X", "password": "abcdef", "role": "owner"},
    )
    assert r.status_code == 400
    assert r.json["message"] == "property role should not exist"


def test_register_unknown_group(client):
    r = client.post(
        "/api/auth/register",
        json={
            "email": "x@example.com",
            "name": "X",
            "password": "abcdef",
            "groupId": "00000000-0000-0000-0000-000000000000",
        },
    )
    assert r.status_code == 404


def test_login_failure_message_is_generic(client):
    wrong_password = client.post("/api/auth/login", json={"email": "member@example.com", "password": "nope-nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope-nope"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json["message"] == unknown_email.json["message"]
    assert wrong_password.json["message"] == "Invalid email or password. Please check and try again."


def test_login_is_case_insensitive(client):
    r = client.post("/api/auth/login", json={"email": "Member@Example.COM", "password": "secret-pw"})
    assert r.status_code == 200
    assert r.json["user"]["email"] == "member@example.com"


def test_login_rate_limited_after_failures(client):
    for _ in range(5):
        r = client.post("/api/auth/login", json={"email": "member@example.com", "password": "wrong-pw"})
        assert r.status_code == 401
    r = client.post("/api/auth/login", json={"email": "member@example.com", "password": "wrong-pw"})
    assert r.status_code == 429


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json["message"] == "Authentication required"


def test_token_of_deleted_user_is_anonymous(app, client, auth, seed):
    headers = auth("blue@example.com")
    with session_scope(app) as s:
        s.delete(s.get(User, seed["blue"]))
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_successful_login_clears_failure_count(client):
    def fail():
        return client.post("/api/auth/login", json={"email": "member@example.com", "password": "wrong-pw"})

    for _ in range(4):
        assert fail().status_code == 401
    r = client.post("/api/auth/login", json={"email": "member@example.com", "password": "secret-pw"})
    assert r.status_code == 200
    for _ in range(4):
        assert fail().status_code == 401


def test_register_rate_limited_after_rejections(client):
    for i in range(5):
        r = client.post("/api/auth/register", json={"email": f"short{i}@example.com", "name": "Short", "password": "123"})
        assert r.status_code == 400
    r = client.post("/api/auth/register", json={"email": "fine@example.com", "name": "Fine", "password": "abcdef"})
    assert r.status_code == 429
