import logging
import os
from collections import defaultdict

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from flask_cors import CORS
from sqlalchemy import inspect as sa_inspect
from werkzeug.exceptions import HTTPException
from werkzeug.http import HTTP_STATUS_CODES

from app.portal.config import load_config
from app.portal.db import init_db, teardown_db_session
from app.portal.errors import PortalError
from app.portal.models import Base
from app.portal.routes import bp as routes_bp
from app.portal.auth import bp as auth_bp, load_current_user
from app.portal.admin import bp as admin_bp
from app.portal.modules.users.api import bp as users_bp
from app.portal.modules.groups.api import bp as groups_bp
from app.portal.modules.submissions.api import bp as submissions_bp

_UNAUTHENTICATED_PATHS = ("/health", "/healthz")


def _error_body(status: int, error: str, message: str) -> dict:
    return {"statusCode": status, "error": error, "message": message}


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False  # type: ignore[attr-defined]

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if str(app.config.get("JWT_SECRET") or "") in ("", "change-me"):
            raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")

    CORS(
        app,
        resources={r"/api/*": {"origins": [o.strip() for o in app.config["CORS_ORIGIN"].split(",") if o.strip()]}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            from botocore.exceptions import BotoCoreError, ClientError

            from app.portal.storage import S3Storage, storage_from_config

            try:
                storage = storage_from_config(app.config)
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except (BotoCoreError, ClientError) as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    app.extensions["auth_attempts"] = defaultdict(list)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(groups_bp, url_prefix="/api/groups")
    app.register_blueprint(submissions_bp, url_prefix="/api/submissions")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    # Schema health (lean): detect drift between the models and the database once, on first API use.
    app.config.setdefault("_schema_health_ok", None)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        engine = app.extensions["sqlalchemy_engine"]
        insp = sa_inspect(engine)
        missing: list[str] = []
        for table in Base.metadata.sorted_tables:
            if not insp.has_table(table.name):
                missing.append(f"{table.name} (table)")
                continue
            cols = {c["name"] for c in insp.get_columns(table.name)}
            missing.extend(f"{table.name}.{c.name}" for c in table.columns if c.name not in cols)
        app.config["_schema_health_missing"] = missing
        app.config["_schema_health_ok"] = not missing
        if missing:
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    @app.before_request
    def _load_user_wrapper():
        if request.path.startswith(_UNAUTHENTICATED_PATHS) or request.method == "OPTIONS":
            g.current_user = None
            return None
        if not app.config.get("_schema_health_ok"):
            # Re-checked until it passes, so a migration applied while running clears the flag.
            _run_schema_health_check()
            if not app.config.get("_schema_health_ok"):
                return jsonify(_error_body(503, "Service Unavailable", "Database schema is out of date.")), 503
        return load_current_user()

    @app.after_request
    def _echo_request_id(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(PortalError)
    def _portal_error(e: PortalError):
        if e.status_code == 403:
            app.logger.warning(
                "Forbidden: %s missing_role=%s user=%s request_id=%s",
                e.message,
                getattr(g, "missing_role", None),
                getattr(getattr(g, "current_user", None), "id", None),
                getattr(g, "request_id", None),
            )
        return jsonify(_error_body(e.status_code, HTTP_STATUS_CODES.get(e.status_code, "Error"), e.message)), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        code = e.code or 500
        message = e.description or e.name
        if code == 413:
            message = "File too large. Maximum size is 50MB."
        return jsonify(_error_body(code, e.name, message)), code

    @app.errorhandler(Exception)
    def _err_500(e: Exception):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify(_error_body(500, "Internal Server Error", "Internal server error")), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
