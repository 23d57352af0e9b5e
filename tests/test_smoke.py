from app.portal import create_app


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_skips_db(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_health_db_reports_dialect(client):
    r = client.get("/api/health/db")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["dialect"] == "sqlite"
    assert r.json["timestamp"].endswith("Z")


def test_request_id_is_echoed(client):
    r = client.get("/api/health/db", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"

    r = client.get("/api/health/db")
    assert r.headers.get("X-Request-ID")


def test_unknown_route_renders_json_error(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json["statusCode"] == 404
    assert r.json["error"] == "Not Found"


def test_missing_schema_returns_503(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'empty.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")

    client = create_app().test_client()
    r = client.get("/api/groups")
    assert r.status_code == 503
    assert r.json["message"] == "Database schema is out of date."

    # Liveness probes stay up regardless.
    assert client.get("/healthz").status_code == 200
