"""Tests for team CRUD and team-scoped visibility."""
import io

from app.portal.db import session_scope
from app.portal.models import User
from app.portal.modules.groups.models import Group
from app.portal.modules.submissions.models import Submission


def test_list_groups_with_counts(client, auth, seed):
    r = client.get("/api/groups", headers=auth("member@example.com"))
    assert r.status_code == 200
    by_id = {grp["id"]: grp for grp in r.json}
    assert by_id[seed["red"]]["memberCount"] == 3
    assert by_id[seed["red"]]["approvedCount"] == 2
    assert by_id[seed["red"]]["leaderName"] == "Lena Leader"
    assert by_id[seed["blue_team"]]["memberCount"] == 1


def test_groups_require_login(client):
    assert client.get("/api/groups").status_code == 401


def test_create_group_is_elevated_only(client, auth):
    r = client.post("/api/groups", json={"name": "Green Team"}, headers=auth("member@example.com"))
    assert r.status_code == 403

    r = client.post("/api/groups", json={"name": "Green Team", "leaderName": "Gus"}, headers=auth("admin@example.com"))
    assert r.status_code == 201
    assert r.json["name"] == "Green Team"
    assert r.json["leaderName"] == "Gus"
    assert r.json["memberCount"] == 0

    r = client.post("/api/groups", json={"leaderName": "Nobody"}, headers=auth("admin@example.com"))
    assert r.status_code == 400


def test_update_group(client, auth, seed):
    r = client.patch(f"/api/groups/{seed['blue_team']}", json={"name": "Navy Team"}, headers=auth("owner@example.com"))
    assert r.status_code == 200
    assert r.json["name"] == "Navy Team"

    r = client.patch(f"/api/groups/{seed['blue_team']}", json={"name": "Mine"}, headers=auth("leader@example.com"))
    assert r.status_code == 403


def test_get_unknown_group_is_404(client, auth):
    r = client.get("/api/groups/00000000-0000-0000-0000-000000000000", headers=auth("member@example.com"))
    assert r.status_code == 404
    assert r.json["message"] == "Group not found"


def test_members_visible_to_own_team_only(client, auth, seed):
    r = client.get(f"/api/groups/{seed['red']}/members", headers=auth("member@example.com"))
    assert r.status_code == 200
    assert {u["email"] for u in r.json} == {"leader@example.com", "member@example.com", "pending@example.com"}

    r = client.get(f"/api/groups/{seed['blue_team']}/members", headers=auth("member@example.com"))
    assert r.status_code == 403
    assert r.json["message"] == "You can only view members from your group"

    r = client.get(f"/api/groups/{seed['blue_team']}/members", headers=auth("admin@example.com"))
    assert r.status_code == 200


def test_group_submissions_visibility(app, client, auth, seed):
    with session_scope(app) as s:
        s.add(Submission(group_id=seed["red"], title="Red report", uploaded_by=seed["member"]))

    r = client.get(f"/api/groups/{seed['red']}/submissions", headers=auth("leader@example.com"))
    assert r.status_code == 200
    assert [x["title"] for x in r.json] == ["Red report"]

    r = client.get(f"/api/groups/{seed['red']}/submissions", headers=auth("blue@example.com"))
    assert r.status_code == 403
    assert r.json["message"] == "You can only view submissions from your group"

    # The owner passes every role guard.
    r = client.get(f"/api/groups/{seed['red']}/submissions", headers=auth("owner@example.com"))
    assert r.status_code == 200


def test_delete_group_releases_members_and_files(app, client, auth, seed, tmp_path):
    member = auth("member@example.com")
    r = client.post(
        "/api/submissions/upload",
        data={"file": (io.BytesIO(b"%PDF-1.4 test"), "report.pdf"), "groupId": seed["red"], "title": "Report"},
        content_type="multipart/form-data",
        headers=member,
    )
    assert r.status_code == 201
    stored = tmp_path / "storage" / "uploads" / r.json["fileUrl"].split("/")[-1]
    assert stored.is_file()

    r = client.delete(f"/api/groups/{seed['red']}", headers=auth("admin@example.com"))
    assert r.status_code == 200
    assert r.json["id"] == seed["red"]
    assert not stored.exists()

    with session_scope(app) as s:
        assert s.get(Group, seed["red"]) is None
        assert s.query(Submission).count() == 0
        leader = s.get(User, seed["leader"])
        assert leader.group_id is None
        assert leader.role == "member"
        assert leader.is_approved is False


def test_update_group_can_clear_leader_name(client, auth, seed):
    owner = auth("owner@example.com")
    r = client.patch(f"/api/groups/{seed['red']}", json={"name": "Crimson Team"}, headers=owner)
    assert r.json["leaderName"] == "Lena Leader"

    r = client.patch(f"/api/groups/{seed['red']}", json={"leaderName": None}, headers=owner)
    assert r.status_code == 200
    assert r.json["leaderName"] is None
    assert r.json["name"] == "Crimson Team"
