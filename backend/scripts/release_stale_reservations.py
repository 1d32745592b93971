#!/usr/bin/env python
"""Return listings stuck in payment_pending to active.

A buyer who reserves a listing and never pays would otherwise block it
indefinitely. Listings reserved longer than
LISTING_RESERVATION_TTL_MINUTES ago are released; intended to run from
cron.

Usage:
    python -m scripts.release_stale_reservations
    python -m scripts.release_stale_reservations --dry-run
"""

import argparse

from sqlalchemy.orm import Session

from config import settings
from database import get_session_local
from services.marketplace_service import MarketplaceService


def release_stale(db: Session, dry_run: bool = False) -> list[str]:
    """Release (or list, with ``dry_run``) stale reservations."""
    listing_ids = MarketplaceService.release_stale_reservations(db, dry_run=dry_run)
    print(
        f"Found {len(listing_ids)} reservations older than "
        f"{settings.LISTING_RESERVATION_TTL_MINUTES} minutes"
    )
    prefix = "[DRY RUN] Would release" if dry_run else "Released"
    for listing_id in listing_ids:
        print(f"  {prefix}: {listing_id}")

    if dry_run:
        print("\n[DRY RUN] No changes made. Run without --dry-run to apply.")
    else:
        db.commit()
    return listing_ids


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Release stale listing reservations")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be released without making changes",
    )
    args = parser.parse_args()

    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        release_stale(db, dry_run=args.dry_run)
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()
