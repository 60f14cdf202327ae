"""Create an admin user in the SQLite identity store, or grant admin to an existing one.

Usage:
    IDENTITY_DB_PATH=./var/identity.db python scripts/bootstrap_admin.py --username admin --password 'Secret123!'
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from components.identity import (  # noqa: E402
    CredentialStore, SqliteUserRepository, UserNotFound, WeakPassword,
)

ADMIN_ROLE = "admin"


def bootstrap_admin(store: CredentialStore, username: str, password: str) -> str:
    """Return 'created', 'promoted' or 'already_admin'."""
    try:
        user = store.find_by_username(username)
    except UserNotFound:
        store.create_user(username, password, [ADMIN_ROLE])
        return "created"
    if ADMIN_ROLE in user.roles:
        return "already_admin"
    store.set_roles(user, user.roles | {ADMIN_ROLE})
    return "promoted"


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--db", default=os.getenv("IDENTITY_DB_PATH", ""), help="SQLite path (IDENTITY_DB_PATH)")
    parser.add_argument("--username", default=os.getenv("ADMIN_USERNAME"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    args = parser.parse_args(argv)

    if not args.db or not args.username or not args.password:
        parser.error("--db, --username and --password (or their env vars) are required")

    repo = SqliteUserRepository(args.db)
    try:
        status = bootstrap_admin(CredentialStore(repo=repo), args.username, args.password)
    except WeakPassword as ex:
        print(f"Password rejected: {', '.join(ex.failures)}", file=sys.stderr)
        return 2
    finally:
        repo.close()
    print(f"{args.username}: {status}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
