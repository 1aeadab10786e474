"""
Create tables, seed the default plans and optionally provision an admin.
Usage: python -m edu_portal.manage_db [--admin-username NAME --admin-email EMAIL --admin-password PASS]
"""
import argparse

from .auth import hash_password
from .database import SessionLocal
from .main import init_database
from .models import User


def create_admin(username: str, email: str, password: str) -> User:
    db = SessionLocal()
    try:
        user = db.query(User).filter((User.username == username) | (User.email == email)).first()
        if user:
            if user.role not in (None, "admin"):
                raise ValueError(f"User '{user.username}' already has role '{user.role}'")
            user.role = "admin"
            user.password_hash = hash_password(password)
        else:
            user = User(username=username, email=email, password_hash=hash_password(password), role="admin")
            db.add(user)
        db.commit()
        db.refresh(user)
        return user
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Edu Portal database management")
    parser.add_argument("--admin-username")
    parser.add_argument("--admin-email")
    parser.add_argument("--admin-password")
    args = parser.parse_args(argv)

    print("Creating tables (if missing) and seeding plans...")
    init_database()

    if args.admin_username:
        if not (args.admin_email and args.admin_password):
            parser.error("--admin-email and --admin-password are required with --admin-username")
        user = create_admin(args.admin_username, args.admin_email, args.admin_password)
        print(f"Admin ready: {user.username} (id={user.id})")

    print("All DB management tasks complete.")


if __name__ == "__main__":
    main()
