from __future__ import annotations

from uuid import UUID

from flask import Blueprint, current_app, jsonify

from app.portal.constants import ROLE_ADMIN, ROLE_LEADER, ROLE_OWNER
from app.portal.db import db_session
from app.portal.errors import PermissionDenied
from app.portal.modules.submissions.service import serialize_submission, submissions_by_uploader
from app.portal.modules.users import service
from app.portal.rbac import current_user, require_login, require_roles
from app.portal.utils import clean_str, parse_email, parse_uuid, read_json_body

bp = Blueprint("users", __name__)


@bp.post("")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def create_user():
    s = db_session()
    payload = read_json_body({"email", "name", "role"})
    u = service.create_user(
        s,
        current_user(),
        email=parse_email(payload, "email"),
        name=clean_str(payload, "name", required=True),
        role=clean_str(payload, "role"),
    )
    s.commit()
    return jsonify(service.serialize_user(u)), 201


@bp.get("")
@require_login
def list_users():
    s = db_session()
    return jsonify([service.serialize_user(u) for u in service.list_users(s)])


@bp.get("/pending")
@require_roles(ROLE_LEADER)
def list_pending():
    user = current_user()
    if not user.group_id:
        raise PermissionDenied("No group assigned")
    s = db_session()
    return jsonify([service.serialize_user(u) for u in service.pending_for_group(s, user.group_id)])


@bp.get("/<uuid:user_id>")
@require_login
def get_user(user_id: UUID):
    s = db_session()
    return jsonify(service.serialize_user(service.get_user_or_404(s, str(user_id))))


@bp.get("/<uuid:user_id>/submissions")
@require_login
def list_user_submissions(user_id: UUID):
    s = db_session()
    return jsonify([serialize_submission(x) for x in submissions_by_uploader(s, str(user_id))])


@bp.patch("/<uuid:user_id>")
@require_login
def update_user(user_id: UUID):
    s = db_session()
    payload = read_json_body({"email", "name"})
    target = service.get_user_or_404(s, str(user_id))
    service.update_profile(
        s,
        current_user(),
        target,
        email=parse_email(payload, "email", required=False),
        name=clean_str(payload, "name"),
    )
    s.commit()
    return jsonify(service.serialize_user(target))


@bp.patch("/<uuid:user_id>/role")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def update_role(user_id: UUID):
    s = db_session()
    payload = read_json_body({"role", "groupId"})
    role = service.validate_role(clean_str(payload, "role", required=True))
    group_id = parse_uuid(payload, "groupId")
    target = service.get_user_or_404(s, str(user_id))
    service.change_role(s, current_user(), target, role=role, group_id=group_id)
    s.commit()
    current_app.logger.info("Role changed: user=%s role=%s group=%s", target.id, target.role, target.group_id)
    return jsonify(service.serialize_user(target))


@bp.patch("/<uuid:user_id>/approve")
@require_roles(ROLE_LEADER)
def approve_user(user_id: UUID):
    s = db_session()
    target = service.get_user_or_404(s, str(user_id))
    service.approve(s, current_user(), target)
    s.commit()
    return jsonify(service.serialize_user(target))


@bp.delete("/<uuid:user_id>/reject")
@require_roles(ROLE_LEADER)
def reject_user(user_id: UUID):
    s = db_session()
    target = service.get_user_or_404(s, str(user_id))
    removed = service.reject(s, current_user(), target)
    s.commit()
    return jsonify(removed)


@bp.patch("/<uuid:user_id>/join-team")
@require_login
def join_team(user_id: UUID):
    s = db_session()
    payload = read_json_body({"groupId"})
    group_id = parse_uuid(payload, "groupId")
    target = service.get_user_or_404(s, str(user_id))
    service.join_team(s, current_user(), target, group_id)
    s.commit()
    return jsonify(service.serialize_user(target))


@bp.delete("/<uuid:user_id>")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def delete_user(user_id: UUID):
    s = db_session()
    target = service.get_user_or_404(s, str(user_id))
    removed = service.delete_user(s, current_user(), target)
    s.commit()
    return jsonify(removed)
