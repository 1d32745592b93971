"""Service for issuing awards from inventory batches.

An award attempt moves through::

    Selecting -> ChainPending -> Confirming -> Committed
    Selecting -> Exhausted
    ChainPending -> ChainFailed
    Confirming -> ReconcileFailed

Unlike most services, award methods commit their own transactions: the
token lease must be visible to other callers before the (slow) chain call,
and the depletion event is published only after the award is durable.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from integrations.chain_protocol import ChainExecutor, TransferInstruction
from integrations.exceptions import ChainError
from models import AwardRecord, InventoryBatch, OwnershipHolding, TokenRecord, TokenStatus
from models.utils import utcnow
from schemas.award import AwardCommitRequest, AwardIssueRequest
from services.chain_verification import chain_failure, verify_transaction
from services.context_service import ContextService
from services.depletion_events import BatchDepleted, DepletionBus
from services.exceptions import (
    ChainFailedError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    ReconcileFailedError,
    StateConflictError,
    TokenConflictError,
)
from services.inventory_service import Exhausted, InventoryService, TokenReservation

logger = logging.getLogger(__name__)


class AwardState(str, Enum):
    """States of a single award attempt."""

    SELECTING = "selecting"
    CHAIN_PENDING = "chain_pending"
    CONFIRMING = "confirming"
    COMMITTED = "committed"
    EXHAUSTED = "exhausted"
    CHAIN_FAILED = "chain_failed"
    RECONCILE_FAILED = "reconcile_failed"


@dataclass
class AwardOutcome:
    """Terminal, non-error result of an award attempt."""

    state: AwardState
    batch_id: str | None
    remaining: int
    award: AwardRecord | None = None
    holding: OwnershipHolding | None = None
    replayed: bool = False

    @property
    def depleted(self) -> bool:
        return self.remaining == 0


class AwardService:
    """Runs the award protocol and the reconciliation-style commit."""

    # --- Shared commit ---

    @staticmethod
    def _write_award(
        db: Session,
        batch: InventoryBatch,
        token_id: str,
        object_id: str,
        recipient: str,
        issuer: str,
        context_id: str | None,
        transaction_reference: str,
        note: str | None,
        lock_id: str | None,
    ) -> tuple[AwardRecord, OwnershipHolding, int]:
        """Mark the token awarded and create the award and holding rows.

        Runs in the caller's transaction; nothing is committed here.
        """
        now = utcnow()
        InventoryService.commit_award(
            db, batch.id, token_id, recipient, transaction_reference, lock_id=lock_id, now=now
        )
        award = AwardRecord(
            recipient=recipient,
            issuer=issuer,
            batch_id=batch.id,
            context_id=context_id,
            token_id=token_id,
            object_id=object_id,
            transaction_reference=transaction_reference,
            note=note,
            awarded_at=now,
        )
        db.add(award)
        db.flush()

        holding = OwnershipHolding(
            object_id=object_id,
            owner=recipient,
            acquired_at=now,
            award_id=award.id,
        )
        db.add(holding)
        db.flush()

        remaining = InventoryService.available_count(db, batch.id)
        return award, holding, remaining

    @staticmethod
    def _notify_depleted(
        bus: DepletionBus | None, batch: InventoryBatch, context_id: str | None
    ) -> None:
        if bus is not None and context_id:
            bus.publish(
                BatchDepleted(context_id=context_id, batch_id=batch.id, issuer=batch.issuer)
            )

    @staticmethod
    def _check_batch_access(
        db: Session, batch: InventoryBatch, issuer: str, context_id: str | None
    ) -> str | None:
        """Validate issuer ownership and context; return the effective context id."""
        if batch.issuer != issuer:
            raise PermissionDeniedError(f"Batch {batch.id} belongs to another issuer")
        if context_id and batch.context_id and batch.context_id != context_id:
            raise InvalidRequestError(
                f"Batch {batch.id} is assigned to a different context"
            )
        effective = context_id or batch.context_id
        if effective:
            ContextService.require_open(db, effective)
        return effective

    # --- Reconciliation-style commit (chain transfer already done) ---

    @staticmethod
    def record_award(
        db: Session,
        request: AwardCommitRequest,
        chain: ChainExecutor | None = None,
        bus: DepletionBus | None = None,
    ) -> AwardOutcome:
        """Commit an award for a transfer the caller already executed.

        Idempotent by transaction reference: replaying a committed
        reference returns the existing award with ``replayed=True``.

        Raises:
            ChainFailedError: The transaction could not be confirmed.
            ReconcileFailedError: The transfer is confirmed but the
                off-chain write failed.
        """
        existing = AwardService._find_replay(db, request)
        if existing is not None:
            return existing

        batch = InventoryService.get_batch(db, request.batch_id)
        context_id = AwardService._check_batch_access(db, batch, request.issuer, request.context_id)

        token = (
            db.query(TokenRecord)
            .filter_by(batch_id=batch.id, object_id=request.object_id)
            .first()
        )
        if not token:
            raise NotFoundError(
                f"Token {request.object_id} is not part of batch {batch.id}"
            )
        if token.status != TokenStatus.AVAILABLE:
            raise TokenConflictError(
                f"Token {request.object_id} was already awarded",
                batch_id=batch.id,
                token_id=token.id,
            )

        verify_transaction(chain, request.transaction_reference, request.object_id, request.recipient)

        try:
            award, holding, remaining = AwardService._write_award(
                db,
                batch,
                token.id,
                token.object_id,
                request.recipient,
                request.issuer,
                context_id,
                request.transaction_reference,
                request.note,
                lock_id=None,
            )
            db.commit()
        except (TokenConflictError, IntegrityError):
            db.rollback()
            replay = AwardService._find_replay(db, request)
            if replay is not None:
                return replay
            raise TokenConflictError(
                f"Token {request.object_id} was awarded concurrently",
                batch_id=batch.id,
                token_id=token.id,
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise AwardService._reconcile_failure(
                request.transaction_reference, batch.id, request.object_id,
                request.recipient, "record_award", e,
            ) from e

        logger.info(
            "Award %s recorded: %s -> %s (tx %s, %d remaining)",
            award.id, token.object_id, request.recipient, request.transaction_reference, remaining,
        )
        if remaining == 0:
            AwardService._notify_depleted(bus, batch, context_id)
        return AwardOutcome(
            state=AwardState.COMMITTED,
            batch_id=batch.id,
            remaining=remaining,
            award=award,
            holding=holding,
        )

    @staticmethod
    def _find_replay(db: Session, request: AwardCommitRequest) -> AwardOutcome | None:
        """Return the committed outcome for a replayed transaction reference."""
        award = (
            db.query(AwardRecord)
            .filter_by(transaction_reference=request.transaction_reference)
            .first()
        )
        if award is None:
            return None
        if award.object_id != request.object_id or award.recipient != request.recipient:
            raise StateConflictError(
                f"Transaction {request.transaction_reference} already recorded a different award",
                code="transaction_reference_reused",
            )
        logger.info("Replayed award commit for tx %s", request.transaction_reference)
        return AwardOutcome(
            state=AwardState.COMMITTED,
            batch_id=award.batch_id,
            remaining=InventoryService.available_count(db, award.batch_id),
            award=award,
            holding=award.holding,
            replayed=True,
        )

    @staticmethod
    def _reconcile_failure(
        transaction_reference: str,
        batch_id: str,
        object_id: str,
        recipient: str,
        step: str,
        cause: Exception,
    ) -> ReconcileFailedError:
        logger.critical(
            "RECONCILE FAILED: tx %s moved %s (batch %s) to %s but %s failed: %s",
            transaction_reference, object_id, batch_id, recipient, step, cause,
        )
        return ReconcileFailedError(
            f"Chain transfer {transaction_reference} succeeded but the award "
            f"could not be recorded; retry the commit with this reference",
            transaction_reference=transaction_reference,
            batch_id=batch_id,
            object_id=object_id,
            recipient=recipient,
            step=step,
        )

    # --- Full server-driven protocol ---

    @staticmethod
    def _candidate_batches(db: Session, request: AwardIssueRequest) -> list[InventoryBatch]:
        if request.batch_id:
            return [InventoryService.get_batch(db, request.batch_id)]
        ContextService.require_open(db, request.context_id)
        return (
            db.query(InventoryBatch)
            .filter(
                InventoryBatch.context_id == request.context_id,
                InventoryBatch.issuer == request.issuer,
            )
            .order_by(InventoryBatch.created_at)
            .all()
        )

    @staticmethod
    def _abandon(db: Session, reservation: TokenReservation) -> None:
        """Release a lease after a failed or interrupted chain call."""
        try:
            db.rollback()
            InventoryService.release_token(db, reservation.token_id, reservation.lock_id)
            db.commit()
        except SQLAlchemyError:
            # Lease expires after TOKEN_LOCK_TTL_SECONDS
            logger.warning(
                "Could not release lease on %s", reservation.object_id, exc_info=True
            )
            db.rollback()

    @staticmethod
    def issue_award(
        db: Session,
        chain: ChainExecutor,
        request: AwardIssueRequest,
        bus: DepletionBus | None = None,
    ) -> AwardOutcome:
        """Reserve a token, transfer it on-chain and commit the award.

        Returns an outcome in state ``committed`` or ``exhausted``.

        Raises:
            ChainFailedError: The transfer failed; no off-chain state changed
                and the lease was released.
            ReconcileFailedError: The transfer succeeded but the commit
                failed; retry with :meth:`record_award` and the reference.
        """
        batches = AwardService._candidate_batches(db, request)
        last_batch = None
        reservation = None
        context_id = None
        conflict = None
        for batch in batches:
            context_id = AwardService._check_batch_access(db, batch, request.issuer, request.context_id)
            last_batch = batch
            try:
                result = InventoryService.reserve_available_token(db, batch.id)
            except TokenConflictError as e:
                # Remaining stock is leased by in-flight awards; try the next batch
                conflict = e
                continue
            if isinstance(result, Exhausted):
                continue
            reservation = result
            break

        if reservation is None and conflict is not None:
            db.rollback()
            raise conflict
        if reservation is None:
            db.commit()
            if last_batch is not None:
                AwardService._notify_depleted(bus, last_batch, context_id)
            logger.info(
                "Award for %s exhausted (batch %s, context %s)",
                request.recipient, last_batch.id if last_batch else None, request.context_id,
            )
            return AwardOutcome(
                state=AwardState.EXHAUSTED,
                batch_id=last_batch.id if last_batch else None,
                remaining=0,
            )

        # Publish the lease before the long chain wait
        db.commit()
        batch = last_batch
        instruction = TransferInstruction(
            object_id=reservation.object_id,
            sender=request.issuer,
            recipient=request.recipient,
        )
        logger.info(
            "Transferring %s to %s (batch %s, lock %s)",
            reservation.object_id, request.recipient, batch.id, reservation.lock_id,
        )
        try:
            receipt = chain.execute_transfer(instruction)
        except ChainError as e:
            logger.warning("Chain transfer of %s failed", reservation.object_id, exc_info=True)
            AwardService._abandon(db, reservation)
            raise chain_failure(e, "Token transfer") from e
        except BaseException:
            AwardService._abandon(db, reservation)
            raise

        if not receipt.success:
            logger.warning(
                "Chain transfer %s of %s finalized as failed: %s",
                receipt.transaction_reference, reservation.object_id, receipt.error,
            )
            AwardService._abandon(db, reservation)
            raise ChainFailedError(
                f"Token transfer {receipt.transaction_reference} failed: {receipt.error}",
                kind="rejected",
                transaction_reference=receipt.transaction_reference,
            )

        try:
            award, holding, remaining = AwardService._write_award(
                db,
                batch,
                reservation.token_id,
                reservation.object_id,
                request.recipient,
                request.issuer,
                context_id,
                receipt.transaction_reference,
                request.note,
                lock_id=reservation.lock_id,
            )
            db.commit()
        except (StateConflictError, SQLAlchemyError) as e:
            db.rollback()
            raise AwardService._reconcile_failure(
                receipt.transaction_reference, batch.id, reservation.object_id,
                request.recipient, "issue_award.commit", e,
            ) from e

        logger.info(
            "Award %s committed: %s -> %s (tx %s, %d remaining)",
            award.id, reservation.object_id, request.recipient,
            receipt.transaction_reference, remaining,
        )
        if remaining == 0:
            AwardService._notify_depleted(bus, batch, context_id)
        return AwardOutcome(
            state=AwardState.COMMITTED,
            batch_id=batch.id,
            remaining=remaining,
            award=award,
            holding=holding,
        )

    # --- Queries ---

    @staticmethod
    def list_awards(
        db: Session,
        recipient: str | None = None,
        issuer: str | None = None,
        context_id: str | None = None,
    ) -> list[AwardRecord]:
        query = db.query(AwardRecord)
        if recipient:
            query = query.filter(AwardRecord.recipient == recipient)
        if issuer:
            query = query.filter(AwardRecord.issuer == issuer)
        if context_id:
            query = query.filter(AwardRecord.context_id == context_id)
        return query.order_by(AwardRecord.awarded_at.desc()).all()

    @staticmethod
    def list_holdings(db: Session, owner: str) -> list[OwnershipHolding]:
        return (
            db.query(OwnershipHolding)
            .filter(OwnershipHolding.owner == owner)
            .order_by(OwnershipHolding.acquired_at.desc())
            .all()
        )
