"""
Create a user (e.g. the first super admin). Run from project root after seeding roles:
  python -m app.scripts.create_user EMAIL NAME PASSWORD [role]
Example:
  python -m app.scripts.create_user admin@example.org "Site Admin" your-secure-password super_admin
"""
import argparse
import sys

from app.core.database import SessionLocal
from app.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    hash_password,
    normalize_email,
)
from app.models import Role, User
from app.schemas.rbac import RoleType


def main() -> int:
    parser = argparse.ArgumentParser(description="Create an Event Reporting user (no registration UI).")
    parser.add_argument("email", help=f"Login email (up to {EMAIL_MAX_LEN} chars)")
    parser.add_argument("name", help="Display name")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument(
        "role",
        nargs="?",
        default=RoleType.STAFF.value,
        help="Role name (default: staff). Must already exist; see app.scripts.seed_rbac",
    )
    args = parser.parse_args()

    email = normalize_email(args.email)
    if not email or len(email) > EMAIL_MAX_LEN:
        print("Invalid email length.", file=sys.stderr)
        return 1
    if not args.name.strip():
        print("Name must not be empty.", file=sys.stderr)
        return 1
    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    db = SessionLocal()
    try:
        role = db.query(Role).filter(Role.name == args.role).first()
        if role is None:
            print(f"Role '{args.role}' does not exist. Run app.scripts.seed_rbac first.", file=sys.stderr)
            return 1
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"User '{email}' already exists.", file=sys.stderr)
            return 1
        user = User(
            name=args.name.strip(),
            email=email,
            password_hash=hash_password(args.password),
            role_id=role.id,
        )
        db.add(user)
        db.commit()
        print(f"Created user '{email}' with role '{role.name}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
