from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.portal.constants import ELEVATED_ROLES, ROLE_ADMIN, ROLE_OWNER
from app.portal.errors import NotAuthenticated, PermissionDenied
from app.portal.models import User


def is_elevated(user: User | None) -> bool:
    return bool(user and user.role in ELEVATED_ROLES)


def user_has_role(user: User | None, roles: tuple[str, ...]) -> bool:
    """
    Role guard semantics: an owner passes every guard, an admin passes only
    guards that list "admin", everyone else needs their role listed.
    """
    if not user:
        return False
    if user.role == ROLE_OWNER:
        return True
    if user.role == ROLE_ADMIN:
        return ROLE_ADMIN in roles
    return user.role in roles


def current_user() -> User:
    u: User | None = getattr(g, "current_user", None)
    if not u:
        raise NotAuthenticated("Authentication required")
    return u


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user()
        return fn(*args, **kwargs)

    return wrapped


def require_roles(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user()
            if not user_has_role(user, roles):
                g.missing_role = ",".join(roles)
                raise PermissionDenied("Insufficient role for this action")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
