"""Grant or revoke the admin role on an existing account.

Usage:
  python scripts/set_role.py --email alice@example.com --role admin
  python scripts/set_role.py --user-id 6f1c... --role user

The account row must already exist (it is created when the user signs up).
This is the way to bootstrap the first admin: the back-office cannot promote anyone
until one admin exists.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from firstcareer.admin.crud import get_user_by_email, update_user
from firstcareer.config import load_config
from firstcareer.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    who = ap.add_mutually_exclusive_group(required=True)
    who.add_argument("--user-id")
    who.add_argument("--email")
    ap.add_argument("--role", choices=["user", "admin"], required=True)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        user_id = args.user_id
        if args.email:
            row = get_user_by_email(conn, args.email)
            if row is None:
                sys.exit(f"No account with email {args.email}")
            user_id = row["id"]
        user = update_user(conn, user_id, {"role": args.role})

    if user is None:
        sys.exit(f"No account with id {user_id}")
    print(f"Updated: id={user['id']} email={user['email']} role={user['role']}")


if __name__ == "__main__":
    main()
