#!/usr/bin/env python3
"""
Create (or reset the password of) an admin or staff account.
Run from project root: python scripts/create_admin.py email@example.org 'password' [--role staff --centre Gorakhpur]
"""
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from centrehub.db import Base, engine, SessionLocal
from centrehub.models.models import User
from centrehub.auth.security import get_password_hash


def create_user(email: str, password: str, role: str = "admin", centre: str = None) -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = email.lower()
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.password_hash = get_password_hash(password)
            user.role = role
            user.centre = centre
            user.is_active = True
            print(f"Updated {email}")
        else:
            db.add(User(email=email, password_hash=get_password_hash(password), role=role, centre=centre))
            print(f"Created {role} {email}")
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a Centre Hub user")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--role", choices=["admin", "staff"], default="admin")
    parser.add_argument("--centre")
    args = parser.parse_args()
    if args.role == "staff" and not args.centre:
        sys.exit("Staff users need --centre")
    create_user(args.email, args.password, role=args.role, centre=args.centre)
