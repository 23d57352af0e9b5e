import pytest
from werkzeug.security import generate_password_hash

from app.portal import create_app
from app.portal.db import session_scope
from app.portal.models import Base, User
from app.portal.modules.groups.models import Group

PASSWORD = "secret-pw"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "storage"))
    for k in ("JWT_SECRET", "S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def seed(app):
    """
    Two teams and one account per role:
    red has a leader, an approved member and a pending applicant; blue has one approved member.
    """
    with session_scope(app) as s:
        red = Group(name="Red Team", leader_name="Lena Leader")
        blue = Group(name="Blue Team")
        s.add_all([red, blue])
        s.flush()

        def user(email, name, role="member", group=None, approved=False):
            u = User(
                email=email,
                name=name,
                role=role,
                password_hash=generate_password_hash(PASSWORD),
                group_id=group.id if group else None,
                is_approved=approved,
            )
            s.add(u)
            return u

        users = {
            "owner": user("owner@example.com", "Olive Owner", role="owner", approved=True),
            "admin": user("admin@example.com", "Adam Admin", role="admin", approved=True),
            "leader": user("leader@example.com", "Lena Leader", role="leader", group=red, approved=True),
            "member": user("member@example.com", "Mia Member", group=red, approved=True),
            "pending": user("pending@example.com", "Pete Pending", group=red),
            "blue": user("blue@example.com", "Ben Blue", group=blue, approved=True),
        }
        s.flush()
        ids = {k: u.id for k, u in users.items()}
        ids["red"] = red.id
        ids["blue_team"] = blue.id
    return ids


@pytest.fixture()
def client(app, seed):
    return app.test_client()


@pytest.fixture()
def auth(client):
    """Returns a function mapping an email to Authorization headers."""

    def _auth(email, password=PASSWORD):
        r = client.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.json
        return {"Authorization": f"Bearer {r.json['accessToken']}"}

    return _auth
