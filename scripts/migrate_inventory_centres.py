#!/usr/bin/env python3
"""
Assign a centre to inventory items created before items were tracked per centre.
Run from project root: python scripts/migrate_inventory_centres.py [--centre Lucknow] [--dry-run]
"""
import argparse
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from sqlalchemy import or_

from centrehub.config import settings
from centrehub.db import SessionLocal
from centrehub.models.models import InventoryItem


def migrate(centre: str, dry_run: bool = False) -> int:
    db = SessionLocal()
    try:
        items = db.query(InventoryItem).filter(or_(InventoryItem.centre.is_(None), InventoryItem.centre == "")).all()
        print(f"Found {len(items)} items without a centre")
        for item in items:
            print(f"  {item.item_name} ({item.id}) -> {centre}")
            item.centre = centre
        if dry_run:
            db.rollback()
            print("Dry run, nothing written")
        else:
            db.commit()
            print("Migration completed")
        return len(items)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--centre", default=settings.default_admin_centre)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    if settings.centres and args.centre not in settings.centres:
        sys.exit(f"Unknown centre: {args.centre}")
    migrate(args.centre, dry_run=args.dry_run)
