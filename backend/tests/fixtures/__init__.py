"""Test fixtures and sample data."""
import itertools

import pytest
from sqlalchemy.orm import Session

from models import AwardContext, InventoryBatch, OwnershipHolding
from schemas.award import AwardCommitRequest
from schemas.inventory import AwardContextCreate, BatchRegister
from services.award_service import AwardOutcome, AwardService
from services.context_service import ContextService
from services.inventory_service import InventoryService

ISSUER = "0x155e"
OTHER_ISSUER = "0x0th3"
RECIPIENT = "0x2ec1"
BUYER = "0xb0b"
OTHER_BUYER = "0xca201"

_refs = itertools.count(1)


def next_ref(prefix: str = "tx") -> str:
    """Return a unique fake chain reference."""
    return f"{prefix}-{next(_refs)}"


def create_batch(
    db: Session,
    quantity: int = 1,
    issuer: str = ISSUER,
    context: AwardContext | None = None,
    transaction_reference: str | None = None,
) -> InventoryBatch:
    """Register a confirmed batch of ``quantity`` fresh tokens.

    This is a helper function (not a fixture) for tests that need several
    batches with different shapes.
    """
    tx = transaction_reference or next_ref("mint")
    batch = InventoryService.register_batch(
        db,
        BatchRegister(
            issuer=issuer,
            transaction_reference=tx,
            quantity=quantity,
            minted_object_ids=[f"0x{tx.replace('-', '')}{i:02d}" for i in range(quantity)],
            template_ref="template-gold",
        ),
    )
    if context is not None:
        InventoryService.assign_batch(db, batch.id, context.id, issuer)
    db.commit()
    return batch


def award_next_token(
    db: Session,
    batch: InventoryBatch,
    recipient: str = RECIPIENT,
    transaction_reference: str | None = None,
    context_id: str | None = None,
) -> AwardOutcome:
    """Commit an award for the batch's lowest available token (no chain)."""
    token = next(t for t in batch.tokens if t.status == "available")
    return AwardService.record_award(
        db,
        AwardCommitRequest(
            batch_id=batch.id,
            recipient=recipient,
            issuer=batch.issuer,
            context_id=context_id,
            transaction_reference=transaction_reference or next_ref("award"),
            object_id=token.object_id,
        ),
    )


@pytest.fixture
def award_context(db) -> AwardContext:
    """Create an open challenge owned by ISSUER."""
    context = ContextService.create_context(
        db, AwardContextCreate(issuer=ISSUER, name="Spring Challenge", kind="challenge")
    )
    db.commit()
    return context


@pytest.fixture
def batch(db) -> InventoryBatch:
    """Create an unassigned batch of three tokens."""
    return create_batch(db, quantity=3)


@pytest.fixture
def single_batch(db) -> InventoryBatch:
    """Create an unassigned batch of one token."""
    return create_batch(db, quantity=1)


@pytest.fixture
def bound_batch(db, award_context) -> InventoryBatch:
    """Create a one-token batch bound to ``award_context``."""
    return create_batch(db, quantity=1, context=award_context)


@pytest.fixture
def holding(db, batch) -> OwnershipHolding:
    """Award one token to RECIPIENT and return the resulting holding."""
    return award_next_token(db, batch).holding
