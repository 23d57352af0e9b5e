from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request

from app.portal.audit import record_event
from app.portal.constants import MIN_PASSWORD_LENGTH, ROLE_MEMBER
from app.portal.db import db_session
from app.portal.errors import Conflict, NotAuthenticated, NotFound, TooManyRequests, ValidationError
from app.portal.models import User, utcnow
from app.portal.modules.groups.models import Group
from app.portal.modules.users.service import find_by_email, serialize_user
from app.portal.rbac import current_user, require_login
from app.portal.security import bearer_token, create_access_token, decode_access_token, hash_password, verify_password
from app.portal.utils import clean_str, parse_email, parse_uuid, read_json_body

bp = Blueprint("auth", __name__)

_RATE_LIMIT = 5
_RATE_WINDOW = 15 * 60  # seconds
_INVALID_CREDENTIALS = "Invalid email or password. Please check and try again."


def _attempts() -> dict[str, list[datetime]]:
    return current_app.extensions.setdefault("auth_attempts", defaultdict(list))


def _rate_key(scope: str) -> str:
    return f"{scope}:{request.remote_addr or 'unknown'}"


def _check_rate_limit(key: str) -> bool:
    attempts = _attempts()
    cutoff = utcnow() - timedelta(seconds=_RATE_WINDOW)
    attempts[key] = [t for t in attempts[key] if t > cutoff]
    return len(attempts[key]) >= _RATE_LIMIT


def _record_failure(key: str) -> None:
    _attempts()[key].append(utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer token.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = (request.headers.get("X-Request-ID") or "").strip()[:64] or uuid.uuid4().hex
    g.current_user = None

    token = bearer_token(request.headers.get("Authorization"))
    if not token:
        return
    claims = decode_access_token(token)
    if not claims or not claims.get("sub"):
        return

    s = db_session()
    user = s.get(User, str(claims["sub"]))
    if not user:
        current_app.logger.info("Token for unknown user ignored (sub=%s)", claims.get("sub"))
        return
    g.current_user = user


def _auth_response(user: User, status: int = 200):
    return jsonify({"user": serialize_user(user), "accessToken": create_access_token(user)}), status


@bp.post("/register")
def register():
    key = _rate_key("register")
    if _check_rate_limit(key):
        raise TooManyRequests("Too many login/register attempts, please try again later.")

    try:
        payload = read_json_body({"email", "name", "password", "groupId"})
        email = parse_email(payload, "email")
        name = clean_str(payload, "name", required=True)
        password = payload.get("password")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"password must be longer than or equal to {MIN_PASSWORD_LENGTH} characters")
        group_id = parse_uuid(payload, "groupId")

        s = db_session()
        if find_by_email(s, email) is not None:
            current_app.logger.warning("Register rejected, email already exists: %s", email)
            raise Conflict("Email already exists")
        if group_id and s.get(Group, group_id) is None:
            raise NotFound("Group not found")
    except (ValidationError, Conflict, NotFound):
        _record_failure(key)
        raise

    user = User(
        email=email,
        name=name,
        role=ROLE_MEMBER,
        password_hash=hash_password(password),
        group_id=group_id,
        is_approved=False,
    )
    s.add(user)
    s.flush()
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=user.id, metadata={"group_id": group_id})
    s.commit()
    current_app.logger.info("User registered: %s", user.id)
    return _auth_response(user, 201)


@bp.post("/login")
def login():
    key = _rate_key("login")
    if _check_rate_limit(key):
        raise TooManyRequests("Too many login/register attempts, please try again later.")

    payload = read_json_body({"email", "password"})
    email = parse_email(payload, "email")
    password = payload.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("password is required.")

    s = db_session()
    user = find_by_email(s, email)
    if user is None or not verify_password(password, user.password_hash):
        _record_failure(key)
        current_app.logger.warning("Login failed (email=%s request_id=%s)", email, g.request_id)
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        # Same message whether the email or the password was wrong.
        raise NotAuthenticated(_INVALID_CREDENTIALS)

    _attempts().pop(key, None)
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
    s.commit()
    return _auth_response(user)


@bp.get("/me")
@require_login
def me():
    return jsonify(serialize_user(current_user()))
