#!/usr/bin/env python3
"""
Seed the default expense categories and their items.
Safe to re-run: existing categories and items are left untouched.
Run from project root: python scripts/seed_categories.py
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from centrehub.db import Base, engine, SessionLocal
from centrehub.routes.categories import seed_default_categories


def run():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        added = seed_default_categories(db)
        print(f"Seeded {added} categories/items")
    finally:
        db.close()


if __name__ == "__main__":
    run()
