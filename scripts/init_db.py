import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.constants import ROLE_OWNER, SAMPLE_GROUPS
from app.portal.models import User
from app.portal.modules.groups.models import Group
from scripts._db_utils import script_session


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed sample teams and the owner account in an idempotent way.
    Teams are only created when the groups table is empty.
    Does NOT overwrite an existing owner's password.
    """
    owner_email = (os.environ.get("OWNER_EMAIL") or "owner@example.com").strip().lower()
    owner_password = os.environ.get("OWNER_PASSWORD") or "change-me"
    owner_name = (os.environ.get("OWNER_NAME") or "Owner").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///portal.db").strip()

    with script_session(db_url) as s:
        if s.query(Group).count() == 0:
            for name, leader_name in SAMPLE_GROUPS:
                s.add(Group(name=name, leader_name=leader_name))
            print(f"Seeded {len(SAMPLE_GROUPS)} sample groups.")
        else:
            print("Groups already exist, skipping seed.")

        user = s.query(User).filter(User.email == owner_email).one_or_none()
        if not user:
            user = User(
                email=owner_email,
                name=owner_name,
                role=ROLE_OWNER,
                password_hash=generate_password_hash(owner_password),
                is_approved=True,
            )
            s.add(user)
            print(f"Created owner account ({owner_email}).")
        elif user.role != ROLE_OWNER:
            user.role = ROLE_OWNER
            user.is_approved = True
            print(f"Promoted existing account to owner ({owner_email}).")
        else:
            print("Owner account already exists.")

    print("Initialized database (seed_only).")
    print("Owner password: (from OWNER_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
