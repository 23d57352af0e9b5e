#!/usr/bin/env python3
"""Set a user's role from the command line (idempotent).

Bypasses the API guards, so use it to bootstrap or recover admin access.

Usage:
  python scripts/set_role.py --email someone@example.com --role admin
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.portal.constants import ELEVATED_ROLES, ROLES
from app.portal.models import User
from scripts._db_utils import script_session


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", required=True, choices=ROLES)
    args = parser.parse_args()

    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///portal.db").strip()
    with script_session(db_url) as s:
        user = s.query(User).filter(User.email.ilike(args.email.strip())).one_or_none()
        if not user:
            print(f"User not found: {args.email}")
            sys.exit(1)
        if user.role == args.role:
            print(f"User already has role {args.role}: {user.email}")
            return
        user.role = args.role
        if args.role in ELEVATED_ROLES:
            user.is_approved = True
        print(f"Role {args.role} set for {user.email}")


if __name__ == "__main__":
    main()
