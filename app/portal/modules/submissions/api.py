from __future__ import annotations

from uuid import UUID

from flask import Blueprint, current_app, jsonify, request, send_file

from app.portal.constants import DEFAULT_CONTENT_TYPE
from app.portal.db import db_session
from app.portal.errors import ValidationError
from app.portal.modules.submissions import service
from app.portal.rbac import current_user, require_login
from app.portal.storage import storage_from_config
from app.portal.utils import clean_str, parse_datetime, parse_uuid, read_form, read_json_body

bp = Blueprint("submissions", __name__)

_JSON_FIELDS = {"groupId", "title", "fileUrl", "uploadedBy", "submittedAt"}


def _uploaded_file():
    f = request.files.get("file")
    if not f or not f.filename:
        raise ValidationError("File is required")
    return f


@bp.post("/upload")
@require_login
def upload():
    s = db_session()
    user = current_user()
    f = _uploaded_file()
    form = read_form({"groupId", "title", "uploadedBy"})
    group_id = parse_uuid(form, "groupId", required=True)
    title = clean_str(form, "title", required=True)
    uploaded_by = service.uploader_for(user, parse_uuid(form, "uploadedBy"))

    service.ensure_can_upload(user, group_id)
    service.ensure_refs(s, group_id, uploaded_by)

    storage = storage_from_config(current_app.config)
    storage_key, file_url = service.store_upload(storage, f)
    try:
        x = service.create_submission(
            s,
            user,
            group_id=group_id,
            title=title,
            file_url=file_url,
            storage_key=storage_key,
            uploaded_by=uploaded_by,
        )
        s.commit()
    except Exception:
        s.rollback()
        service.discard_key(storage, storage_key, current_app.logger)
        raise
    current_app.logger.info("Submission uploaded: id=%s group=%s key=%s", x.id, group_id, storage_key)
    return jsonify(service.serialize_submission(x)), 201


@bp.post("")
@require_login
def create_submission():
    s = db_session()
    user = current_user()
    payload = read_json_body(_JSON_FIELDS)
    group_id = parse_uuid(payload, "groupId", required=True)
    service.ensure_can_upload(user, group_id)
    x = service.create_submission(
        s,
        user,
        group_id=group_id,
        title=clean_str(payload, "title", required=True),
        file_url=clean_str(payload, "fileUrl") or None,
        uploaded_by=service.uploader_for(user, parse_uuid(payload, "uploadedBy")),
        submitted_at=parse_datetime(payload, "submittedAt"),
    )
    s.commit()
    return jsonify(service.serialize_submission(x)), 201


@bp.get("")
@require_login
def list_submissions():
    s = db_session()
    return jsonify([service.serialize_submission(x) for x in service.list_submissions(s)])


def _send(submission_id: UUID, *, inline: bool):
    s = db_session()
    x = service.get_submission_or_404(s, str(submission_id))
    storage = storage_from_config(current_app.config)
    key, filename = service.resolve_file(storage, x)
    inline = inline and service.can_render_inline(key)
    mimetype = service.view_content_type(key) if inline else DEFAULT_CONTENT_TYPE
    response = send_file(
        storage.open(key),
        mimetype=mimetype,
        as_attachment=not inline,
        download_name=filename,
    )
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


@bp.get("/<uuid:submission_id>/view")
@require_login
def view(submission_id: UUID):
    return _send(submission_id, inline=True)


@bp.get("/<uuid:submission_id>/download")
@require_login
def download(submission_id: UUID):
    return _send(submission_id, inline=False)


@bp.get("/<uuid:submission_id>")
@require_login
def get_submission(submission_id: UUID):
    s = db_session()
    return jsonify(service.serialize_submission(service.get_submission_or_404(s, str(submission_id))))


@bp.post("/<uuid:submission_id>/upload")
@require_login
def replace_file(submission_id: UUID):
    s = db_session()
    user = current_user()
    x = service.get_submission_or_404(s, str(submission_id))
    service.ensure_can_manage(user, x)
    service.ensure_can_upload(user, x.group_id)
    f = _uploaded_file()
    form = read_form({"title"})
    title = clean_str(form, "title")

    storage = storage_from_config(current_app.config)
    storage_key, file_url = service.store_upload(storage, f)
    try:
        previous = service.replace_file(s, user, x, storage_key=storage_key, file_url=file_url, title=title)
        s.commit()
    except Exception:
        s.rollback()
        service.discard_key(storage, storage_key, current_app.logger)
        raise
    if previous != storage_key:
        service.discard_key(storage, previous, current_app.logger)
    return jsonify(service.serialize_submission(x))


@bp.patch("/<uuid:submission_id>")
@require_login
def update_submission(submission_id: UUID):
    s = db_session()
    user = current_user()
    payload = read_json_body(_JSON_FIELDS)
    x = service.get_submission_or_404(s, str(submission_id))
    service.ensure_can_manage(user, x)
    changes = {
        "group_id": parse_uuid(payload, "groupId"),
        "title": clean_str(payload, "title") or None,
        "file_url": clean_str(payload, "fileUrl") or None,
        "uploaded_by": parse_uuid(payload, "uploadedBy"),
        "submitted_at": parse_datetime(payload, "submittedAt"),
    }
    detached = service.update_submission(s, user, x, changes)
    s.commit()
    service.discard_key(storage_from_config(current_app.config), detached, current_app.logger)
    return jsonify(service.serialize_submission(x))


@bp.delete("/<uuid:submission_id>")
@require_login
def delete_submission(submission_id: UUID):
    s = db_session()
    user = current_user()
    x = service.get_submission_or_404(s, str(submission_id))
    service.ensure_can_manage(user, x)
    removed = service.delete_submission(s, user, x)
    s.commit()
    service.discard_file(storage_from_config(current_app.config), x, current_app.logger)
    return jsonify(removed)
