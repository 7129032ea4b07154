"""
Create the first admin account. There is no implicit default admin: run this
once against a fresh database.

Usage:
    python scripts/create_admin.py --username admin --name "Site Admin" --email admin@example.com
    (the password is read from ADMIN_PASSWORD or prompted for)
"""
import argparse
import getpass
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sitebooks.db import Base, SessionLocal, engine
from sitebooks.auth.security import get_password_hash
from sitebooks.models.enums import Role
from sitebooks.models.models import User


def create_admin(username: str, name: str, email: str, password: str) -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing = db.query(User).filter((User.username == username) | (User.email == email.lower())).first()
        if existing:
            print(f"[SKIP] User already exists: {existing.username} ({existing.role.value})")
            return 1
        user = User(
            username=username,
            name=name,
            email=email.lower(),
            password_hash=get_password_hash(password),
            role=Role.admin,
        )
        db.add(user)
        db.commit()
        print(f"[OK] Admin created: {user.username} ({user.id})")
        return 0
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the first admin user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    args = parser.parse_args()

    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password: ")
    if len(password) < 8:
        print("[ERROR] Password must be at least 8 characters")
        return 2
    return create_admin(args.username.strip(), args.name.strip(), args.email.strip(), password)


if __name__ == "__main__":
    sys.exit(main())
