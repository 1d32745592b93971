#!/usr/bin/env python
"""Report batches whose award accounting is inconsistent.

Checks, for every batch, that awarded_count equals the number of awarded
tokens and stays within 0..quantity. Exits non-zero if anything is off.

Usage:
    python -m scripts.check_inventory_invariants
    python -m scripts.check_inventory_invariants --issuer 0xabc...
"""

import argparse
import sys

from sqlalchemy.orm import Session

from database import get_session_local
from integrations.chain_protocol import normalize_address
from models import InventoryBatch
from services.inventory_service import InventoryService


def find_violations(db: Session, issuer: str | None = None) -> dict[str, list[str]]:
    """Map batch id to its accounting violations (only failing batches)."""
    query = db.query(InventoryBatch)
    if issuer:
        query = query.filter(InventoryBatch.issuer == normalize_address(issuer))

    violations = {}
    for batch in query.order_by(InventoryBatch.created_at).all():
        problems = InventoryService.check_invariants(db, batch)
        if problems:
            violations[batch.id] = problems
    return violations


def main() -> int:
    parser = argparse.ArgumentParser(description="Check inventory accounting invariants")
    parser.add_argument("--issuer", help="Only check batches owned by this wallet")
    args = parser.parse_args()

    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        violations = find_violations(db, args.issuer)
    finally:
        db.close()

    if not violations:
        print("All batches consistent")
        return 0

    print(f"{len(violations)} batches with violations:")
    for batch_id, problems in violations.items():
        print(f"  {batch_id}")
        for problem in problems:
            print(f"    - {problem}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
