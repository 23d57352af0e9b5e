from flask import Blueprint
from sqlalchemy import text

from app.portal.db import db_session
from app.portal.models import utcnow
from app.portal.utils import isoformat

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s/DO probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/health/db")
def health_db():
    """Round-trips the database; a failure surfaces as a 500 through the error handler."""
    s = db_session()
    s.execute(text("SELECT 1"))
    bind = s.get_bind()
    return {
        "ok": True,
        "dialect": bind.dialect.name,
        "timestamp": isoformat(utcnow()),
    }
