from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from flask import current_app
from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from app.portal.models import User


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def create_access_token(user: User) -> str:
    """Sign a bearer token for the given user."""
    cfg = current_app.config
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=int(cfg.get("ACCESS_TOKEN_EXPIRE_MINUTES") or 60))
    claims: dict[str, Any] = {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "groupId": user.group_id,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(claims, cfg["JWT_SECRET"], algorithm=cfg["JWT_ALGORITHM"])


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Return the token claims, or None for an invalid or expired token."""
    cfg = current_app.config
    try:
        return jwt.decode(token, cfg["JWT_SECRET"], algorithms=[cfg["JWT_ALGORITHM"]])
    except JWTError:
        return None


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
