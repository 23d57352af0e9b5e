from __future__ import annotations

from uuid import UUID

from flask import Blueprint, current_app, jsonify

from app.portal.constants import ROLE_ADMIN, ROLE_LEADER, ROLE_MEMBER, ROLE_OWNER
from app.portal.db import db_session
from app.portal.modules.groups import service
from app.portal.modules.submissions.service import discard_key, serialize_submission, submissions_for_group
from app.portal.modules.users.service import get_group_or_404, members_of_group, serialize_user
from app.portal.rbac import current_user, require_login, require_roles
from app.portal.storage import storage_from_config
from app.portal.utils import clean_str, read_json_body

bp = Blueprint("groups", __name__)


@bp.post("")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def create_group():
    s = db_session()
    payload = read_json_body({"name", "leaderName"})
    grp = service.create_group(
        s,
        current_user(),
        name=clean_str(payload, "name", required=True),
        leader_name=clean_str(payload, "leaderName"),
    )
    s.commit()
    return jsonify(service.serialize_group(grp)), 201


@bp.get("")
@require_login
def list_groups():
    s = db_session()
    return jsonify([service.serialize_group(grp) for grp in service.list_groups(s)])


@bp.get("/<uuid:group_id>")
@require_login
def get_group(group_id: UUID):
    s = db_session()
    return jsonify(service.serialize_group(get_group_or_404(s, str(group_id))))


@bp.get("/<uuid:group_id>/members")
@require_login
def list_members(group_id: UUID):
    s = db_session()
    grp = get_group_or_404(s, str(group_id))
    service.ensure_can_see_team(current_user(), grp.id, "members")
    return jsonify([serialize_user(u) for u in members_of_group(s, grp.id)])


@bp.get("/<uuid:group_id>/submissions")
@require_roles(ROLE_MEMBER, ROLE_LEADER, ROLE_ADMIN)
def list_submissions(group_id: UUID):
    s = db_session()
    grp = get_group_or_404(s, str(group_id))
    service.ensure_can_see_team(current_user(), grp.id, "submissions")
    return jsonify([serialize_submission(x) for x in submissions_for_group(s, grp.id)])


@bp.patch("/<uuid:group_id>")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def update_group(group_id: UUID):
    s = db_session()
    payload = read_json_body({"name", "leaderName"})
    grp = get_group_or_404(s, str(group_id))
    service.update_group(
        s,
        current_user(),
        grp,
        name=clean_str(payload, "name"),
        leader_name=clean_str(payload, "leaderName") if "leaderName" in payload else service.UNCHANGED,
    )
    s.commit()
    return jsonify(service.serialize_group(grp))


@bp.delete("/<uuid:group_id>")
@require_roles(ROLE_OWNER, ROLE_ADMIN)
def delete_group(group_id: UUID):
    s = db_session()
    grp = get_group_or_404(s, str(group_id))
    removed, storage_keys = service.delete_group(s, current_user(), grp)
    s.commit()

    storage = storage_from_config(current_app.config)
    for key in storage_keys:
        discard_key(storage, key, current_app.logger)
    current_app.logger.info("Group deleted: id=%s files_removed=%s", removed["id"], len(storage_keys))
    return jsonify(removed)
