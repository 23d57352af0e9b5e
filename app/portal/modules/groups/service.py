from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.portal.audit import record_event
from app.portal.constants import ROLE_LEADER, ROLE_MEMBER
from app.portal.errors import PermissionDenied
from app.portal.models import User
from app.portal.modules.groups.models import Group
from app.portal.rbac import is_elevated
from app.portal.utils import isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


UNCHANGED = object()


def serialize_group(grp: Group) -> dict[str, Any]:
    members = grp.members or []
    return {
        "id": grp.id,
        "name": grp.name,
        "leaderName": grp.leader_name,
        "createdAt": isoformat(grp.created_at),
        "memberCount": len(members),
        "approvedCount": sum(1 for m in members if m.is_approved),
    }


def list_groups(s: "Session") -> list[Group]:
    return list(s.scalars(select(Group).order_by(Group.created_at.desc(), Group.id)))


def ensure_can_see_team(user: User, group_id: str, what: str) -> None:
    """Elevated users see every team; everyone else only their own."""
    if is_elevated(user):
        return
    if user.role not in (ROLE_MEMBER, ROLE_LEADER):
        raise PermissionDenied(f"You are not allowed to view {what}")
    if not user.group_id or user.group_id != group_id:
        raise PermissionDenied(f"You can only view {what} from your group")


def create_group(s: "Session", actor: User, *, name: str, leader_name: str | None) -> Group:
    grp = Group(name=name, leader_name=leader_name or None)
    s.add(grp)
    s.flush()
    record_event(s, actor=actor, action="group.create", entity_type="Group", entity_id=grp.id, metadata={"name": name})
    return grp


def update_group(s: "Session", actor: User, grp: Group, *, name: str | None, leader_name: Any = UNCHANGED) -> Group:
    """An explicit null or blank leaderName clears it; leaving the field out keeps it."""
    if name:
        grp.name = name
    if leader_name is not UNCHANGED:
        grp.leader_name = leader_name or None
    record_event(
        s,
        actor=actor,
        action="group.update",
        entity_type="Group",
        entity_id=grp.id,
        metadata={"name": name, "leader_name": grp.leader_name},
    )
    return grp


def delete_group(s: "Session", actor: User, grp: Group) -> tuple[dict[str, Any], list[str]]:
    """
    Members drop back to team-less applicants and the team's submissions go with it.
    Returns the removed group and the storage keys the caller should discard after commit.
    """
    snapshot = serialize_group(grp)
    snapshot["memberCount"] = 0
    snapshot["approvedCount"] = 0
    storage_keys = [x.storage_key for x in grp.submissions if x.storage_key]

    for member in list(grp.members):
        member.group_id = None
        member.is_approved = False
        if member.role == ROLE_LEADER:
            member.role = ROLE_MEMBER
    record_event(
        s,
        actor=actor,
        action="group.delete",
        entity_type="Group",
        entity_id=grp.id,
        metadata={"name": grp.name, "submissions": len(grp.submissions)},
    )
    s.delete(grp)
    return snapshot, storage_keys
