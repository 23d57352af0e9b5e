from __future__ import annotations

import re
import uuid
from collections.abc import Iterable
from datetime import date, datetime, timezone
from typing import Any

from flask import request

from app.portal.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MISSING = object()


def _reject_unknown(keys: Iterable[str], allowed: Iterable[str]) -> None:
    unknown = sorted(set(keys) - set(allowed))
    if unknown:
        raise ValidationError(f"property {unknown[0]} should not exist")


def read_json_body(allowed: Iterable[str]) -> dict[str, Any]:
    """Parse the JSON request body; unknown properties are rejected."""
    if not request.get_data(cache=True):
        return {}
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    _reject_unknown(payload.keys(), allowed)
    return payload


def read_form(allowed: Iterable[str]) -> dict[str, str]:
    """Multipart/urlencoded fields as a plain dict; unknown fields are rejected."""
    form = request.form.to_dict()
    _reject_unknown(form.keys(), allowed)
    return form


def clean_str(payload: dict[str, Any], field: str, *, required: bool = False) -> str | None:
    value = payload.get(field, _MISSING)
    if value is _MISSING or value is None:
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string.")
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} is required.")
    return value


def parse_uuid(payload: dict[str, Any], field: str, *, required: bool = False) -> str | None:
    raw = clean_str(payload, field, required=required)
    if not raw:
        return None
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        raise ValidationError(f"{field} must be a UUID.") from None


def parse_email(payload: dict[str, Any], field: str = "email", *, required: bool = True) -> str | None:
    raw = clean_str(payload, field, required=required)
    if raw is None or (not raw and not required):
        return None
    if not _EMAIL_RE.match(raw):
        raise ValidationError(f"{field} must be an email.")
    return raw.lower()


def parse_datetime(payload: dict[str, Any], field: str) -> datetime | None:
    """ISO-8601 timestamp; aware values are converted to naive UTC."""
    raw = clean_str(payload, field)
    if not raw:
        return None
    try:
        value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{field} must be an ISO 8601 date string.") from None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD; blank means no filter."""
    s = (s or "").strip()
    if not s:
        return None
    return date.fromisoformat(s)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")
