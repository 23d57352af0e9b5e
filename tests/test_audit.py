"""Tests for the admin audit trail."""
from app.portal.audit import record_event
from app.portal.db import session_scope
from app.portal.models import AuditEvent


def test_audit_requires_elevated_role(client, auth):
    assert client.get("/api/admin/audit").status_code == 401
    assert client.get("/api/admin/audit", headers=auth("leader@example.com")).status_code == 403


def test_login_and_approval_are_audited(client, auth, seed):
    client.post("/api/auth/login", json={"email": "member@example.com", "password": "wrong-pw"})
    client.patch(f"/api/users/{seed['pending']}/approve", headers=auth("leader@example.com"))

    admin = auth("admin@example.com")
    r = client.get("/api/admin/audit", headers=admin)
    assert r.status_code == 200
    actions = [ev["action"] for ev in r.json]
    assert "auth.login_failed" in actions
    assert "user.approve" in actions
    assert "auth.login" in actions

    r = client.get("/api/admin/audit?action=user.approve", headers=admin)
    assert [ev["entityId"] for ev in r.json] == [seed["pending"]]
    assert r.json[0]["actorEmail"] == "leader@example.com"
    assert r.json[0]["metadata"] == {"group_id": seed["red"]}

    r = client.get("/api/admin/audit?actor_email=LEADER@", headers=admin)
    assert r.json
    assert {ev["actorEmail"] for ev in r.json} == {"leader@example.com"}


def test_audit_date_filters(client, auth):
    admin = auth("admin@example.com")
    r = client.get("/api/admin/audit?date_from=2000-01-01&date_to=2999-12-31", headers=admin)
    assert r.status_code == 200
    assert r.json

    r = client.get("/api/admin/audit?date_to=2000-01-01", headers=admin)
    assert r.status_code == 200
    assert r.json == []

    r = client.get("/api/admin/audit?date_from=yesterday", headers=admin)
    assert r.status_code == 400
    assert r.json["message"] == "date_from must be YYYY-MM-DD"


def test_record_event_outside_request(app, seed):
    with session_scope(app) as s:
        ev = record_event(s, actor=None, action="script.seed", metadata={"groups": 2}, request_id="cli")
    with session_scope(app) as s:
        stored = s.get(AuditEvent, ev.id)
        assert stored.request_id == "cli"
        assert stored.client_ip is None
        assert stored.metadata_json == '{"groups": 2}'
