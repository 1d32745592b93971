"""Service for award contexts (challenges and events)."""

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from models import AwardContext, ContextStatus, InventoryBatch
from models.utils import utcnow
from schemas.inventory import AwardContextCreate
from services.exceptions import NotFoundError, PermissionDeniedError, StateConflictError
from services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class ContextService:
    """Create, look up and close award contexts."""

    @staticmethod
    def create_context(db: Session, data: AwardContextCreate) -> AwardContext:
        context = AwardContext(
            issuer=data.issuer,
            name=data.name.strip(),
            kind=data.kind,
            status=ContextStatus.OPEN,
        )
        db.add(context)
        db.flush()
        logger.info("Created %s %s (%s) for %s", context.kind, context.id, context.name, context.issuer)
        return context

    @staticmethod
    def get_context(db: Session, context_id: str) -> AwardContext:
        context = db.query(AwardContext).filter_by(id=context_id).first()
        if not context:
            raise NotFoundError(f"Award context not found: {context_id}")
        return context

    @staticmethod
    def require_open(db: Session, context_id: str) -> AwardContext:
        """Return the context, or raise if it is closed to further awards."""
        context = ContextService.get_context(db, context_id)
        if context.is_closed:
            raise StateConflictError(
                f"Award context {context_id} is closed", code="context_closed"
            )
        return context

    @staticmethod
    def close_context(db: Session, context_id: str, issuer: str) -> AwardContext:
        """Permanently close a context. One-way."""
        context = ContextService.get_context(db, context_id)
        if context.issuer != issuer:
            raise PermissionDeniedError("Only the context's issuer can close it")

        db.flush()
        result = db.execute(
            update(AwardContext)
            .where(AwardContext.id == context_id, AwardContext.status == ContextStatus.OPEN)
            .values(status=ContextStatus.CLOSED, closed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StateConflictError(
                f"Award context {context_id} is already closed", code="context_closed"
            )
        db.refresh(context)
        logger.info("Closed award context %s", context_id)
        return context

    @staticmethod
    def bind_batch(db: Session, context_id: str, batch_id: str, issuer: str) -> InventoryBatch:
        """Give an open context its (first or next) source batch."""
        context = ContextService.require_open(db, context_id)
        if context.issuer != issuer:
            raise PermissionDeniedError("Only the context's issuer can bind batches to it")
        return InventoryService.assign_batch(db, batch_id, context_id, issuer)
