from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update

from app.portal.audit import record_event
from app.portal.constants import MAX_TEAM_MEMBERS, ROLE_LEADER, ROLE_MEMBER, ROLE_OWNER, ROLES
from app.portal.errors import Conflict, NotFound, PermissionDenied, ValidationError
from app.portal.models import User
from app.portal.modules.groups.models import Group
from app.portal.modules.submissions.models import Submission
from app.portal.rbac import is_elevated
from app.portal.utils import isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


TEAM_FULL_MESSAGE = f"Team is full. Maximum {MAX_TEAM_MEMBERS} members allowed per team."


def serialize_user(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role,
        "groupId": u.group_id,
        "isApproved": bool(u.is_approved),
        "createdAt": isoformat(u.created_at),
    }


def validate_role(role: str | None) -> str:
    if role not in ROLES:
        raise ValidationError(f"role must be one of the following values: {', '.join(ROLES)}")
    return role


def get_user_or_404(s: "Session", user_id: str) -> User:
    u = s.get(User, user_id)
    if not u:
        raise NotFound("User not found")
    return u


def get_group_or_404(s: "Session", group_id: str) -> Group:
    grp = s.get(Group, group_id)
    if not grp:
        raise NotFound("Group not found")
    return grp


def find_by_email(s: "Session", email: str) -> User | None:
    return s.scalars(select(User).where(func.lower(User.email) == email.lower())).one_or_none()


def list_users(s: "Session") -> list[User]:
    return list(s.scalars(select(User).order_by(User.created_at.desc(), User.id)))


def members_of_group(s: "Session", group_id: str) -> list[User]:
    return list(s.scalars(select(User).where(User.group_id == group_id).order_by(User.created_at.desc(), User.id)))


def pending_for_group(s: "Session", group_id: str) -> list[User]:
    stmt = (
        select(User)
        .where(User.group_id == group_id, User.is_approved.is_(False))
        .order_by(User.created_at.asc(), User.id)
    )
    return list(s.scalars(stmt))


def find_leader(s: "Session", group_id: str) -> User | None:
    stmt = select(User).where(User.group_id == group_id, User.role == ROLE_LEADER).limit(1)
    return s.scalars(stmt).first()


def count_approved_members(s: "Session", group_id: str) -> int:
    stmt = select(func.count(User.id)).where(User.group_id == group_id, User.is_approved.is_(True))
    return int(s.scalar(stmt) or 0)


def ensure_capacity(s: "Session", group_id: str) -> None:
    """Pending applicants do not hold a seat; only approved members count toward the cap."""
    if count_approved_members(s, group_id) >= MAX_TEAM_MEMBERS:
        raise PermissionDenied(TEAM_FULL_MESSAGE)


def _ensure_can_touch(actor: User, target: User) -> None:
    if target.role == ROLE_OWNER and actor.role != ROLE_OWNER:
        raise PermissionDenied("Cannot modify owner account")


def _set_leader_name(s: "Session", group_id: str | None, name: str | None) -> None:
    if not group_id:
        return
    grp = s.get(Group, group_id)
    if grp is not None:
        grp.leader_name = name


def create_user(s: "Session", actor: User, *, email: str, name: str, role: str | None) -> User:
    role = validate_role(role or ROLE_MEMBER)
    if role == ROLE_OWNER and actor.role != ROLE_OWNER:
        raise PermissionDenied("Only owner can assign owner role")
    if find_by_email(s, email) is not None:
        raise Conflict("Email already exists")
    u = User(email=email, name=name, role=role, is_approved=False)
    s.add(u)
    s.flush()
    record_event(s, actor=actor, action="user.create", entity_type="User", entity_id=u.id, metadata={"role": role})
    return u


def update_profile(s: "Session", actor: User, target: User, *, email: str | None, name: str | None) -> User:
    if actor.id != target.id and not is_elevated(actor):
        raise PermissionDenied("You can only update your own profile")
    _ensure_can_touch(actor, target)

    if email and email != target.email:
        other = find_by_email(s, email)
        if other is not None and other.id != target.id:
            raise Conflict("Email already exists")
        target.email = email
    if name:
        target.name = name
        if target.role == ROLE_LEADER:
            _set_leader_name(s, target.group_id, name)

    record_event(s, actor=actor, action="user.update", entity_type="User", entity_id=target.id)
    return target


def change_role(s: "Session", actor: User, target: User, *, role: str, group_id: str | None) -> User:
    """
    Role/team assignment from the admin console.

    Rules:
    - only an owner may grant the owner role or touch an owner account
    - a leader must belong to a team, and a team has at most one leader
    - moving someone into a different team needs a free seat
    """
    role = validate_role(role)
    if role == ROLE_OWNER and actor.role != ROLE_OWNER:
        raise PermissionDenied("Only owner can assign owner role")
    _ensure_can_touch(actor, target)

    if group_id:
        get_group_or_404(s, group_id)
    target_group_id = group_id or target.group_id
    joining = bool(group_id and group_id != target.group_id)

    if role == ROLE_LEADER:
        if not target_group_id:
            raise PermissionDenied("Leader must belong to a team")
        existing = find_leader(s, target_group_id)
        if existing is not None and existing.id != target.id:
            raise PermissionDenied(
                f"Team already has a leader: {existing.name}. Please remove the current leader first."
            )

    # Promotion approves the new leader, which takes a seat too.
    if joining or (role == ROLE_LEADER and not target.is_approved):
        ensure_capacity(s, target_group_id)

    old_role, old_group_id = target.role, target.group_id
    target.role = role
    target.group_id = target_group_id

    if old_role == ROLE_LEADER and (role != ROLE_LEADER or target_group_id != old_group_id):
        _set_leader_name(s, old_group_id, None)
    if role == ROLE_LEADER:
        target.is_approved = True
        _set_leader_name(s, target_group_id, target.name)

    record_event(
        s,
        actor=actor,
        action="user.role_change",
        entity_type="User",
        entity_id=target.id,
        metadata={"from_role": old_role, "to_role": role, "from_group": old_group_id, "to_group": target_group_id},
    )
    return target


def _ensure_same_team(actor: User, target: User, verb: str) -> None:
    if not actor.group_id or not target.group_id:
        raise PermissionDenied(f"Leader must belong to a team to {verb} users")
    if actor.group_id != target.group_id:
        raise PermissionDenied(f"You can only {verb} users in your own group")


def approve(s: "Session", actor: User, target: User) -> User:
    _ensure_same_team(actor, target, "approve")
    if target.is_approved:
        return target
    ensure_capacity(s, target.group_id)
    target.is_approved = True
    record_event(
        s,
        actor=actor,
        action="user.approve",
        entity_type="User",
        entity_id=target.id,
        metadata={"group_id": target.group_id},
    )
    return target


def reject(s: "Session", actor: User, target: User) -> dict[str, Any]:
    """Deletes a pending applicant; returns its last representation."""
    _ensure_same_team(actor, target, "reject")
    if target.is_approved:
        raise PermissionDenied("Only pending users can be rejected")
    snapshot = serialize_user(target)
    record_event(
        s,
        actor=actor,
        action="user.reject",
        entity_type="User",
        entity_id=target.id,
        metadata={"email": target.email, "group_id": target.group_id},
    )
    _delete(s, target)
    return snapshot


def join_team(s: "Session", actor: User, target: User, group_id: str | None) -> User:
    if target.id != actor.id and not is_elevated(actor):
        raise PermissionDenied("You can only change your own team")
    if group_id:
        get_group_or_404(s, group_id)
    if group_id and group_id != target.group_id:
        ensure_capacity(s, group_id)

    old_group_id = target.group_id
    target.group_id = group_id
    # Any team (re)assignment needs a fresh approval, including the current team.
    target.is_approved = False
    if target.role == ROLE_LEADER:
        target.role = ROLE_MEMBER
        _set_leader_name(s, old_group_id, None)

    record_event(
        s,
        actor=actor,
        action="user.join_team",
        entity_type="User",
        entity_id=target.id,
        metadata={"from_group": old_group_id, "to_group": group_id},
    )
    return target


def _delete(s: "Session", target: User) -> None:
    s.execute(update(Submission).where(Submission.uploaded_by == target.id).values(uploaded_by=None))
    if target.role == ROLE_LEADER:
        _set_leader_name(s, target.group_id, None)
    s.delete(target)


def delete_user(s: "Session", actor: User, target: User) -> dict[str, Any]:
    _ensure_can_touch(actor, target)
    snapshot = serialize_user(target)
    record_event(s, actor=actor, action="user.delete", entity_type="User", entity_id=target.id, metadata={"email": target.email})
    _delete(s, target)
    return snapshot
