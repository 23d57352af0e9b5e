"""
Central constants for the team portal.
"""
from __future__ import annotations

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_LEADER = "leader"
ROLE_MEMBER = "member"

# Highest privilege first.
ROLES = (ROLE_OWNER, ROLE_ADMIN, ROLE_LEADER, ROLE_MEMBER)
ELEVATED_ROLES = frozenset({ROLE_OWNER, ROLE_ADMIN})

# Approved members per team.
MAX_TEAM_MEMBERS = 10

MIN_PASSWORD_LENGTH = 6

UPLOAD_URL_PREFIX = "/uploads/"
UPLOAD_KEY_PREFIX = "uploads"

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Inline viewing content types, keyed by lower-case extension.
# Archives are deliberately absent so they fall back to a download.
VIEW_CONTENT_TYPES = {
    # documents
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".doc": "application/msword",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".ppt": "application/vnd.ms-powerpoint",
    # images
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    # text
    ".txt": "text/plain",
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    # audio
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    # video
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
}

# Content a browser would execute if rendered from the API origin; always sent as an attachment.
ACTIVE_CONTENT_EXTENSIONS = frozenset({".html", ".htm", ".svg", ".js", ".xml"})

# Seeded on first boot when the groups table is empty: (name, leader_name).
SAMPLE_GROUPS = (
    ("Web Server Team", "John Doe"),
    ("Database Server Team", "Jane Smith"),
    ("Mail Server Team", "Mike Johnson"),
    ("Red Team", "Sarah Williams"),
    ("Blue Team", "David Brown"),
    ("Purple Team", "Emma Davis"),
)
