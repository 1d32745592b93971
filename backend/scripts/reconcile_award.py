#!/usr/bin/env python
"""Complete the off-chain commit for an award whose chain transfer succeeded.

Use this after a ``reconcile_failed`` error (logged at CRITICAL with every
value needed below). The transfer is not resubmitted: the commit is keyed
by the chain transaction reference, so running it twice is harmless.

Usage:
    python -m scripts.reconcile_award --tx <digest> --batch-id <id> \\
        --object-id <0x...> --recipient <0x...> --issuer <0x...>
    python -m scripts.reconcile_award ... --no-verify
"""

import argparse
import sys

from sqlalchemy.orm import Session

from database import get_session_local
from integrations.chain_protocol import ChainExecutor
from integrations.sui_client import SuiRpcClient
from schemas.award import AwardCommitRequest
from services.award_service import AwardOutcome, AwardService
from services.depletion_events import depletion_bus
from services.depletion_service import make_depletion_handler
from services.exceptions import BadgeServiceError


def reconcile(db: Session, request: AwardCommitRequest, chain: ChainExecutor | None) -> AwardOutcome:
    """Run the idempotent award commit and print what happened."""
    outcome = AwardService.record_award(db, request, chain=chain, bus=depletion_bus)
    if outcome.replayed:
        print(f"Award for tx {request.transaction_reference} was already recorded (id={outcome.award.id})")
    else:
        print(f"Recorded award {outcome.award.id}: {request.object_id} -> {request.recipient}")
    print(f"  Remaining in batch {outcome.batch_id}: {outcome.remaining}")
    return outcome


def main() -> int:
    parser = argparse.ArgumentParser(description="Re-run the off-chain commit for a transferred award")
    parser.add_argument("--tx", required=True, help="Chain transaction reference of the transfer")
    parser.add_argument("--batch-id", required=True, help="Inventory batch id")
    parser.add_argument("--object-id", required=True, help="Transferred token object id")
    parser.add_argument("--recipient", required=True, help="Recipient wallet address")
    parser.add_argument("--issuer", required=True, help="Issuer wallet address")
    parser.add_argument("--context-id", help="Award context id, if any")
    parser.add_argument("--note", help="Optional award note")
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip re-querying the transaction on-chain",
    )
    args = parser.parse_args()

    request = AwardCommitRequest(
        batch_id=args.batch_id,
        recipient=args.recipient,
        issuer=args.issuer,
        context_id=args.context_id,
        transaction_reference=args.tx,
        object_id=args.object_id,
        note=args.note,
    )

    SessionLocal = get_session_local()
    depletion_bus.subscribe(make_depletion_handler(SessionLocal))
    chain = None if args.no_verify else SuiRpcClient()
    db = SessionLocal()
    try:
        reconcile(db, request, chain)
    except BadgeServiceError as e:
        db.rollback()
        print(f"Error ({e.code}): {e}")
        return 1
    finally:
        db.close()
        if chain is not None:
            chain.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
