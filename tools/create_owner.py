#!/usr/bin/env python3
import sys
from pathlib import Path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))
import argparse
import logging
from core.database import DatabaseManager
from models.types import UserCreate

logger = logging.getLogger("tools.create_owner")


def create_or_promote_owner(db: DatabaseManager, email: str, username: str, password: str):
    """Create the owner account, or promote an existing account with that email."""
    existing = db.get_user_by_email(email)
    if existing:
        if existing.role == "owner" and existing.status == "active":
            return existing, False
        user = db.update_user_admin(existing.id, existing.id, role="owner", status="active",
                                    reason="Promoted by create_owner")
        return user, False
    user = db.create_user(UserCreate(username=username, email=email, password=password),
                          role="owner", is_verified=True)
    return user, True


def main(argv=None):
    parser = argparse.ArgumentParser(description='Create (or promote) the owner account')
    parser.add_argument('--email', required=True, help='Owner email address')
    parser.add_argument('--username', default='owner', help='Username used when the account is created')
    parser.add_argument('--password', help='Password used when the account is created')
    parser.add_argument('--db', type=str, default=None, help='Path to the SQLite database (defaults to DATABASE_PATH)')
    args = parser.parse_args(argv)

    db = DatabaseManager(args.db)
    if not db.get_user_by_email(args.email) and not args.password:
        parser.error('--password is required when creating a new account')

    user, created = create_or_promote_owner(db, args.email, args.username, args.password)
    print(f"{'Created' if created else 'Promoted'} owner {user.username} <{user.email}> (id={user.id})")
    return 0


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='[%(asctime)s] [%(levelname)s] [%(name)s] - %(message)s')
    sys.exit(main())
