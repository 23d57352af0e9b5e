from __future__ import annotations

import os
import re
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.portal.audit import record_event
from app.portal.constants import (
    ACTIVE_CONTENT_EXTENSIONS,
    DEFAULT_CONTENT_TYPE,
    ROLE_LEADER,
    UPLOAD_KEY_PREFIX,
    UPLOAD_URL_PREFIX,
    VIEW_CONTENT_TYPES,
)
from app.portal.errors import NotFound, PermissionDenied
from app.portal.models import User
from app.portal.modules.groups.models import Group
from app.portal.modules.submissions.models import Submission
from app.portal.rbac import is_elevated
from app.portal.storage import Storage, StorageError
from app.portal.utils import isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from werkzeug.datastructures import FileStorage


_EXT_RE = re.compile(r"^\.[A-Za-z0-9]{1,16}$")

NOT_APPROVED_MESSAGE = "Your account must be approved by your team leader before uploading files"


def serialize_submission(x: Submission) -> dict[str, Any]:
    return {
        "id": x.id,
        "groupId": x.group_id,
        "title": x.title,
        "fileUrl": x.file_url,
        "submittedAt": isoformat(x.submitted_at),
        "uploadedBy": x.uploaded_by,
    }


def get_submission_or_404(s: "Session", submission_id: str) -> Submission:
    x = s.get(Submission, submission_id)
    if not x:
        raise NotFound("Submission not found")
    return x


def list_submissions(s: "Session") -> list[Submission]:
    return list(s.scalars(select(Submission).order_by(Submission.submitted_at.desc(), Submission.id)))


def submissions_for_group(s: "Session", group_id: str) -> list[Submission]:
    stmt = select(Submission).where(Submission.group_id == group_id).order_by(Submission.submitted_at.desc(), Submission.id)
    return list(s.scalars(stmt))


def submissions_by_uploader(s: "Session", user_id: str) -> list[Submission]:
    stmt = select(Submission).where(Submission.uploaded_by == user_id).order_by(Submission.submitted_at.desc(), Submission.id)
    return list(s.scalars(stmt))


def ensure_can_upload(user: User, group_id: str) -> None:
    """Approval gate: owners and admins always pass; others need approval and can only post to their team."""
    if is_elevated(user):
        return
    if not user.is_approved:
        raise PermissionDenied(NOT_APPROVED_MESSAGE)
    if user.group_id != group_id:
        raise PermissionDenied("You can only upload files to your own group")


def ensure_can_manage(user: User, x: Submission) -> None:
    if is_elevated(user):
        return
    if x.uploaded_by == user.id:
        return
    if user.role == ROLE_LEADER and user.group_id == x.group_id:
        return
    raise PermissionDenied("You can only change your own submissions")


def uploader_for(user: User, requested: str | None) -> str:
    """Only owners and admins may record an upload on someone else's behalf."""
    if requested and is_elevated(user):
        return requested
    return user.id


def ensure_refs(s: "Session", group_id: str | None, uploaded_by: str | None) -> None:
    if group_id and s.get(Group, group_id) is None:
        raise NotFound("Group not found")
    if uploaded_by and s.get(User, uploaded_by) is None:
        raise NotFound("User not found")


def safe_extension(filename: str | None) -> str:
    ext = os.path.splitext(filename or "")[1]
    return ext if _EXT_RE.match(ext) else ""


def store_upload(storage: Storage, f: "FileStorage") -> tuple[str, str]:
    """Persist an uploaded file under a random name; returns (storage_key, file_url)."""
    stored_name = f"{uuid.uuid4()}{safe_extension(f.filename)}"
    storage_key = f"{UPLOAD_KEY_PREFIX}/{stored_name}"
    storage.put_bytes(storage_key, f.read(), content_type=(f.mimetype or DEFAULT_CONTENT_TYPE))
    return storage_key, f"{UPLOAD_URL_PREFIX}{stored_name}"


def storage_key_for(x: Submission) -> str | None:
    """Records created through the JSON endpoint only carry a file_url; map it back onto the uploads area."""
    if x.storage_key:
        return x.storage_key
    if not x.file_url:
        return None
    name = x.file_url.rstrip("/").split("/")[-1]
    if not name:
        return None
    return f"{UPLOAD_KEY_PREFIX}/{name}"


def view_content_type(filename: str) -> str:
    return VIEW_CONTENT_TYPES.get(os.path.splitext(filename)[1].lower(), DEFAULT_CONTENT_TYPE)


def can_render_inline(filename: str) -> bool:
    return os.path.splitext(filename)[1].lower() not in ACTIVE_CONTENT_EXTENSIONS


def resolve_file(storage: Storage, x: Submission) -> tuple[str, str]:
    """Returns (storage_key, client filename) or raises NotFound."""
    if not x.file_url:
        raise NotFound("File not found")
    key = storage_key_for(x)
    if not key:
        raise NotFound("Invalid file path")
    try:
        present = storage.exists(key)
    except StorageError:
        present = False
    if not present:
        raise NotFound("File not found")
    ext = os.path.splitext(key)[1]
    return key, f"{x.title}{ext}"


def discard_key(storage: Storage, key: str | None, logger=None) -> None:
    """Best-effort removal once the database no longer points at the object."""
    if not key:
        return
    try:
        storage.delete(key)
    except StorageError as e:
        if logger is not None:
            logger.warning("Could not delete stored file %s: %s", key, e)


def discard_file(storage: Storage, x: Submission, logger=None) -> None:
    discard_key(storage, x.storage_key, logger)


def create_submission(
    s: "Session",
    actor: User,
    *,
    group_id: str,
    title: str,
    file_url: str | None = None,
    storage_key: str | None = None,
    uploaded_by: str | None = None,
    submitted_at: datetime | None = None,
) -> Submission:
    ensure_refs(s, group_id, uploaded_by)
    x = Submission(
        group_id=group_id,
        title=title,
        file_url=file_url,
        storage_key=storage_key,
        uploaded_by=uploaded_by,
    )
    if submitted_at is not None:
        x.submitted_at = submitted_at
    s.add(x)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="submission.upload" if storage_key else "submission.create",
        entity_type="Submission",
        entity_id=x.id,
        metadata={"group_id": group_id, "title": title, "file_url": file_url},
    )
    return x


def update_submission(s: "Session", actor: User, x: Submission, changes: dict[str, Any]) -> str | None:
    """Applies a partial update; returns the storage key the record no longer points at, if any."""
    group_id = changes.get("group_id")
    if group_id and group_id != x.group_id and not is_elevated(actor):
        ensure_can_upload(actor, group_id)
    uploaded_by = changes.get("uploaded_by")
    if uploaded_by and uploaded_by != x.uploaded_by and not is_elevated(actor):
        raise PermissionDenied("Only owners and admins can reassign a submission")
    ensure_refs(s, group_id, uploaded_by)

    detached = None
    file_url = changes.get("file_url")
    if file_url is not None and file_url != x.file_url:
        # An explicit URL detaches the record from its stored object.
        detached = x.storage_key
        x.storage_key = None

    for attr in ("group_id", "title", "file_url", "uploaded_by", "submitted_at"):
        value = changes.get(attr)
        if value is not None:
            setattr(x, attr, value)

    record_event(
        s,
        actor=actor,
        action="submission.update",
        entity_type="Submission",
        entity_id=x.id,
        metadata={k: v for k, v in changes.items() if v is not None},
    )
    return detached


def replace_file(s: "Session", actor: User, x: Submission, *, storage_key: str, file_url: str, title: str | None) -> str | None:
    """Points the record at a new stored file; returns the previous storage key."""
    previous = x.storage_key
    x.storage_key = storage_key
    x.file_url = file_url
    if title:
        x.title = title
    record_event(
        s,
        actor=actor,
        action="submission.replace_file",
        entity_type="Submission",
        entity_id=x.id,
        metadata={"file_url": file_url, "previous_key": previous},
    )
    return previous


def delete_submission(s: "Session", actor: User, x: Submission) -> dict[str, Any]:
    snapshot = serialize_submission(x)
    record_event(
        s,
        actor=actor,
        action="submission.delete",
        entity_type="Submission",
        entity_id=x.id,
        metadata={"group_id": x.group_id, "title": x.title},
    )
    s.delete(x)
    return snapshot
