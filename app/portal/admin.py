import json
from datetime import datetime, time, timedelta

from flask import Blueprint, jsonify, request

from app.portal.constants import ROLE_ADMIN, ROLE_OWNER
from app.portal.db import db_session
from app.portal.errors import ValidationError
from app.portal.models import AuditEvent
from app.portal.rbac import require_roles
from app.portal.utils import isoformat, parse_date

bp = Blueprint("admin", __name__)


def _date_arg(name: str):
    try:
        return parse_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be YYYY-MM-DD") from None


def _serialize_event(ev: AuditEvent) -> dict:
    return {
        "id": ev.id,
        "createdAt": isoformat(ev.created_at),
        "requestId": ev.request_id,
        "actorUserId": ev.actor_user_id,
        "actorEmail": ev.actor_user_email,
        "action": ev.action,
        "entityType": ev.entity_type,
        "entityId": ev.entity_id,
        "reason": ev.reason,
        "metadata": json.loads(ev.metadata_json) if ev.metadata_json else None,
        "clientIp": ev.client_ip,
    }


@bp.get("/audit")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def audit_list():
    """
    Audit trail for the admin console (last 200 events) with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD, inclusive)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _date_arg("date_from")
    date_to = _date_arg("date_to")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return jsonify([_serialize_event(ev) for ev in events])
