"""Service for resolving depleted award contexts.

When the batch bound to a context runs out, a trigger is opened. The
issuer resolves it exactly once, either by binding a replacement batch
(reassign) or by permanently closing the context (finalize).
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import update
from sqlalchemy.orm import Session

from models import AwardContext, DepletionTrigger, InventoryBatch, TriggerStatus
from models.utils import utcnow
from services.context_service import ContextService
from services.depletion_events import BatchDepleted, DepletionHandler
from services.exceptions import (
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


@dataclass
class DepletionOptions:
    """Resolutions currently available for a trigger."""

    trigger: DepletionTrigger
    candidate_batches: list[InventoryBatch] = field(default_factory=list)

    @property
    def can_reassign(self) -> bool:
        return self.trigger.status == TriggerStatus.OPEN and bool(self.candidate_batches)

    @property
    def can_finalize(self) -> bool:
        return self.trigger.status == TriggerStatus.OPEN


class DepletionService:
    """Opens and resolves depletion triggers."""

    @staticmethod
    def on_batch_depleted(db: Session, event: BatchDepleted) -> DepletionTrigger | None:
        """Open a trigger for the event's context.

        Returns the already-open trigger if the context has one, and None
        if the context is closed.
        """
        context = db.query(AwardContext).filter_by(id=event.context_id).first()
        if context is None or context.is_closed:
            logger.info("Ignoring depletion of %s: context %s is closed", event.batch_id, event.context_id)
            return None

        existing = (
            db.query(DepletionTrigger)
            .filter_by(context_id=event.context_id, status=TriggerStatus.OPEN)
            .first()
        )
        if existing:
            return existing

        trigger = DepletionTrigger(
            context_id=event.context_id,
            batch_id=event.batch_id,
            issuer=event.issuer,
            status=TriggerStatus.OPEN,
        )
        db.add(trigger)
        db.flush()
        logger.info(
            "Opened depletion trigger %s for context %s (batch %s)",
            trigger.id, event.context_id, event.batch_id,
        )
        return trigger

    @staticmethod
    def get_trigger(db: Session, trigger_id: str) -> DepletionTrigger:
        trigger = db.query(DepletionTrigger).filter_by(id=trigger_id).first()
        if not trigger:
            raise NotFoundError(f"Depletion trigger not found: {trigger_id}")
        return trigger

    @staticmethod
    def list_open_triggers(
        db: Session, issuer: str | None = None, context_id: str | None = None
    ) -> list[DepletionTrigger]:
        query = db.query(DepletionTrigger).filter(DepletionTrigger.status == TriggerStatus.OPEN)
        if issuer:
            query = query.filter(DepletionTrigger.issuer == issuer)
        if context_id:
            query = query.filter(DepletionTrigger.context_id == context_id)
        return query.order_by(DepletionTrigger.created_at).all()

    @staticmethod
    def get_options(db: Session, trigger_id: str) -> DepletionOptions:
        """Reassign is offered only if the issuer has an unassigned batch with stock."""
        trigger = DepletionService.get_trigger(db, trigger_id)
        if trigger.status != TriggerStatus.OPEN:
            return DepletionOptions(trigger=trigger)
        candidates = InventoryService.list_batches(
            db, trigger.issuer, available_only=True, unassigned_only=True
        )
        return DepletionOptions(trigger=trigger, candidate_batches=candidates)

    @staticmethod
    def _resolve(db: Session, trigger: DepletionTrigger, issuer: str, values: dict) -> None:
        if trigger.issuer != issuer:
            raise PermissionDeniedError("Only the context's issuer can resolve this trigger")
        db.flush()
        result = db.execute(
            update(DepletionTrigger)
            .where(
                DepletionTrigger.id == trigger.id,
                DepletionTrigger.status == TriggerStatus.OPEN,
            )
            .values(resolved_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.refresh(trigger)
            raise StateConflictError(
                f"Depletion trigger {trigger.id} was already {trigger.status}",
                code="trigger_resolved",
            )

    @staticmethod
    def reassign(db: Session, trigger_id: str, batch_id: str, issuer: str) -> DepletionTrigger:
        """Bind a replacement batch to the trigger's context.

        Runs in the caller's transaction; on any error the caller must
        roll back so the trigger stays open.
        """
        trigger = DepletionService.get_trigger(db, trigger_id)
        ContextService.require_open(db, trigger.context_id)
        DepletionService._resolve(
            db,
            trigger,
            issuer,
            {"status": TriggerStatus.REASSIGNED, "replacement_batch_id": batch_id},
        )
        InventoryService.assign_batch(db, batch_id, trigger.context_id, issuer)
        db.refresh(trigger)
        logger.info(
            "Depletion trigger %s resolved: batch %s now serves context %s",
            trigger_id, batch_id, trigger.context_id,
        )
        return trigger

    @staticmethod
    def finalize(db: Session, trigger_id: str, issuer: str, confirm: bool = False) -> DepletionTrigger:
        """Permanently close the trigger's context. Requires ``confirm=True``."""
        if not confirm:
            raise InvalidRequestError(
                "Closing a context is permanent and must be confirmed",
                code="confirmation_required",
            )
        trigger = DepletionService.get_trigger(db, trigger_id)
        DepletionService._resolve(db, trigger, issuer, {"status": TriggerStatus.FINALIZED})
        ContextService.close_context(db, trigger.context_id, issuer)
        db.refresh(trigger)
        logger.info("Depletion trigger %s resolved: context %s closed", trigger_id, trigger.context_id)
        return trigger


def make_depletion_handler(session_factory: Callable[[], Session]) -> DepletionHandler:
    """Build a bus subscriber that records triggers in its own session."""

    def handle(event: BatchDepleted) -> None:
        db = session_factory()
        try:
            DepletionService.on_batch_depleted(db, event)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return handle
