"""Service for inventory batches and their token ledger.

Owns the accounting invariant: a batch's ``awarded_count`` equals the
number of its tokens in status ``awarded`` and never exceeds
``quantity``. Every path that awards a token changes both in the same
transaction, using conditional updates so concurrent writers cannot both
claim one token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from config import settings
from integrations.chain_protocol import ChainExecutor
from models import ChainStatus, InventoryBatch, TokenRecord, TokenStatus, generate_uuid
from models.utils import utcnow
from schemas.inventory import BatchRegister
from services.chain_verification import verify_transaction
from services.exceptions import (
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    TokenConflictError,
)

logger = logging.getLogger(__name__)


@dataclass
class TokenReservation:
    """A token leased to one in-flight award attempt."""

    batch_id: str
    token_id: str
    object_id: str
    lock_id: str


@dataclass
class Exhausted:
    """No available token remains in the batch. Not an error."""

    batch_id: str | None


def _compare_and_set(db: Session, stmt) -> bool:
    """Flush pending work, run a conditional UPDATE, report if one row changed."""
    db.flush()
    result = db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


class InventoryService:
    """Manages batch registration, token leases and award accounting."""

    # --- Registration ---

    @staticmethod
    def register_batch(
        db: Session, data: BatchRegister, chain: ChainExecutor | None = None
    ) -> InventoryBatch:
        """Register a confirmed purchase/mint as a new batch.

        Only the first ``quantity`` object ids are used. Registering the
        same transaction reference again for the same issuer returns the
        existing batch.
        """
        existing = (
            db.query(InventoryBatch)
            .filter(InventoryBatch.transaction_reference == data.transaction_reference)
            .first()
        )
        if existing:
            if existing.issuer != data.issuer:
                raise StateConflictError(
                    f"Transaction {data.transaction_reference} is already registered",
                    code="transaction_reference_reused",
                )
            logger.info(
                "Batch for %s already registered (id=%s)",
                data.transaction_reference, existing.id,
            )
            return existing

        if len(data.minted_object_ids) < data.quantity:
            raise InvalidRequestError(
                f"Expected {data.quantity} minted object ids, got {len(data.minted_object_ids)}"
            )
        object_ids = data.minted_object_ids[: data.quantity]
        if len(set(object_ids)) != len(object_ids):
            raise InvalidRequestError("Minted object ids must be unique")

        verify_transaction(chain, data.transaction_reference)

        now = utcnow()
        batch = InventoryBatch(
            issuer=data.issuer,
            template_ref=data.template_ref,
            is_custom_minted=data.template_ref is None,
            custom_name=data.custom_name,
            custom_description=data.custom_description,
            custom_image_url=data.custom_image_url,
            quantity=data.quantity,
            awarded_count=0,
            chain_status=ChainStatus.CONFIRMED,
            transaction_reference=data.transaction_reference,
            mint_cost=data.mint_cost,
        )
        batch.tokens = [
            TokenRecord(
                position=i,
                object_id=object_id,
                status=TokenStatus.AVAILABLE,
                minted_transaction_reference=data.transaction_reference,
                minted_at=now,
            )
            for i, object_id in enumerate(object_ids)
        ]
        db.add(batch)
        try:
            db.flush()
        except IntegrityError:
            db.rollback()
            raise StateConflictError(
                "A minted object id is already tracked by another batch",
                code="object_already_tracked",
            )
        logger.info(
            "Registered batch %s: %d tokens for %s (tx %s)",
            batch.id, batch.quantity, batch.issuer, batch.transaction_reference,
        )
        return batch

    # --- Queries ---

    @staticmethod
    def get_batch(db: Session, batch_id: str) -> InventoryBatch:
        batch = db.query(InventoryBatch).filter_by(id=batch_id).first()
        if not batch:
            raise NotFoundError(f"Inventory batch not found: {batch_id}")
        return batch

    @staticmethod
    def list_batches(
        db: Session,
        issuer: str,
        context_id: str | None = None,
        available_only: bool = False,
        unassigned_only: bool = False,
    ) -> list[InventoryBatch]:
        """List an issuer's batches, newest first."""
        query = (
            db.query(InventoryBatch)
            .options(selectinload(InventoryBatch.tokens))
            .filter(InventoryBatch.issuer == issuer)
        )
        if context_id is not None:
            query = query.filter(InventoryBatch.context_id == context_id)
        if unassigned_only:
            query = query.filter(InventoryBatch.context_id.is_(None))
        if available_only:
            query = query.filter(
                InventoryBatch.chain_status == ChainStatus.CONFIRMED,
                InventoryBatch.awarded_count < InventoryBatch.quantity,
            )
        return query.order_by(InventoryBatch.created_at.desc()).all()

    @staticmethod
    def available_count(db: Session, batch_id: str) -> int:
        """Count tokens still in status ``available`` (leased or not)."""
        return (
            db.query(func.count(TokenRecord.id))
            .filter(
                TokenRecord.batch_id == batch_id,
                TokenRecord.status == TokenStatus.AVAILABLE,
            )
            .scalar()
        )

    @staticmethod
    def check_invariants(db: Session, batch: InventoryBatch) -> list[str]:
        """Return human-readable accounting violations for a batch."""
        violations = []
        awarded = (
            db.query(func.count(TokenRecord.id))
            .filter(
                TokenRecord.batch_id == batch.id,
                TokenRecord.status == TokenStatus.AWARDED,
            )
            .scalar()
        )
        total = db.query(func.count(TokenRecord.id)).filter(TokenRecord.batch_id == batch.id).scalar()
        if batch.awarded_count != awarded:
            violations.append(
                f"awarded_count={batch.awarded_count} but {awarded} tokens are awarded"
            )
        if not 0 <= batch.awarded_count <= batch.quantity:
            violations.append(
                f"awarded_count={batch.awarded_count} outside 0..{batch.quantity}"
            )
        if batch.chain_status == ChainStatus.CONFIRMED and total != batch.quantity:
            violations.append(f"{total} tokens tracked for quantity {batch.quantity}")
        return violations

    # --- Leases and awards ---

    @staticmethod
    def _lease_cutoff(now: datetime) -> datetime:
        return now - timedelta(seconds=settings.TOKEN_LOCK_TTL_SECONDS)

    @staticmethod
    def reserve_available_token(
        db: Session, batch_id: str, now: datetime | None = None
    ) -> TokenReservation | Exhausted:
        """Lease the lowest-position available token in a batch.

        Returns :class:`Exhausted` when no token is in status ``available``.
        Tokens leased by another in-flight attempt are skipped; expired
        leases are taken over.

        Raises:
            TokenConflictError: Tokens remain, but all are leased.
        """
        batch = InventoryService.get_batch(db, batch_id)
        if batch.chain_status != ChainStatus.CONFIRMED:
            raise StateConflictError(
                f"Batch {batch_id} is not confirmed on-chain", code="batch_not_confirmed"
            )

        now = now or utcnow()
        cutoff = InventoryService._lease_cutoff(now)
        lease_free = or_(TokenRecord.lock_id.is_(None), TokenRecord.locked_at < cutoff)

        candidates = (
            db.query(TokenRecord.id, TokenRecord.object_id)
            .filter(
                TokenRecord.batch_id == batch_id,
                TokenRecord.status == TokenStatus.AVAILABLE,
                lease_free,
            )
            .order_by(TokenRecord.position)
            .all()
        )
        for token_id, object_id in candidates:
            lock_id = generate_uuid()
            claimed = _compare_and_set(
                db,
                update(TokenRecord)
                .where(
                    TokenRecord.id == token_id,
                    TokenRecord.status == TokenStatus.AVAILABLE,
                    lease_free,
                )
                .values(lock_id=lock_id, locked_at=now),
            )
            if claimed:
                logger.debug("Leased token %s (lock %s)", object_id, lock_id)
                return TokenReservation(
                    batch_id=batch_id, token_id=token_id, object_id=object_id, lock_id=lock_id
                )
            logger.debug("Lost lease race on token %s, trying next", object_id)

        if InventoryService.available_count(db, batch_id) == 0:
            logger.info("Batch %s is exhausted", batch_id)
            return Exhausted(batch_id=batch_id)
        raise TokenConflictError(
            f"All remaining tokens in batch {batch_id} are reserved by in-flight awards",
            batch_id=batch_id,
        )

    @staticmethod
    def release_token(db: Session, token_id: str, lock_id: str) -> bool:
        """Drop a lease. Returns False if the lease was already gone."""
        released = _compare_and_set(
            db,
            update(TokenRecord)
            .where(TokenRecord.id == token_id, TokenRecord.lock_id == lock_id)
            .values(lock_id=None, locked_at=None),
        )
        if released:
            logger.info("Released lease %s on token %s", lock_id, token_id)
        return released

    @staticmethod
    def commit_award(
        db: Session,
        batch_id: str,
        token_id: str,
        recipient: str,
        transaction_reference: str,
        lock_id: str | None = None,
        now: datetime | None = None,
    ) -> TokenRecord:
        """Mark a token awarded and bump the batch's ``awarded_count``.

        Both updates are conditional and run in the caller's transaction.
        With ``lock_id`` the token must still hold that lease; without it
        any lease is ignored (the chain transfer already happened).

        Raises:
            TokenConflictError: The token is no longer available, or the
                batch has no remaining quantity. The caller must roll back.
        """
        now = now or utcnow()
        conditions = [
            TokenRecord.id == token_id,
            TokenRecord.batch_id == batch_id,
            TokenRecord.status == TokenStatus.AVAILABLE,
        ]
        if lock_id is not None:
            conditions.append(TokenRecord.lock_id == lock_id)

        token_claimed = _compare_and_set(
            db,
            update(TokenRecord)
            .where(*conditions)
            .values(
                status=TokenStatus.AWARDED,
                recipient=recipient,
                award_transaction_reference=transaction_reference,
                awarded_at=now,
                lock_id=None,
                locked_at=None,
            ),
        )
        if not token_claimed:
            raise TokenConflictError(
                f"Token {token_id} is no longer available in batch {batch_id}",
                batch_id=batch_id,
                token_id=token_id,
            )

        counted = _compare_and_set(
            db,
            update(InventoryBatch)
            .where(
                InventoryBatch.id == batch_id,
                InventoryBatch.awarded_count < InventoryBatch.quantity,
            )
            .values(
                awarded_count=InventoryBatch.awarded_count + 1,
                updated_at=now,
            ),
        )
        if not counted:
            raise TokenConflictError(
                f"Batch {batch_id} has no remaining quantity", batch_id=batch_id
            )

        token = db.get(TokenRecord, token_id)
        db.refresh(token)
        batch = db.get(InventoryBatch, batch_id)
        db.refresh(batch)
        logger.info(
            "Token %s awarded to %s (batch %s now %d/%d)",
            token.object_id, recipient, batch_id, batch.awarded_count, batch.quantity,
        )
        return token

    # --- Context binding ---

    @staticmethod
    def assign_batch(db: Session, batch_id: str, context_id: str, issuer: str) -> InventoryBatch:
        """Bind an unassigned batch with availability to a context."""
        batch = InventoryService.get_batch(db, batch_id)
        if batch.issuer != issuer:
            raise PermissionDeniedError(f"Batch {batch_id} belongs to another issuer")
        if batch.chain_status != ChainStatus.CONFIRMED or batch.available_count <= 0:
            raise StateConflictError(
                f"Batch {batch_id} has no available tokens", code="batch_exhausted"
            )

        bound = _compare_and_set(
            db,
            update(InventoryBatch)
            .where(InventoryBatch.id == batch_id, InventoryBatch.context_id.is_(None))
            .values(context_id=context_id, updated_at=utcnow()),
        )
        if not bound:
            raise StateConflictError(
                f"Batch {batch_id} is already assigned", code="batch_assigned"
            )
        db.refresh(batch)
        logger.info("Batch %s assigned to context %s", batch_id, context_id)
        return batch
