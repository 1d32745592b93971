"""DepletionTrigger model - a pending 'batch ran out' decision for a context."""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class TriggerStatus:
    OPEN = "open"
    REASSIGNED = "reassigned"
    FINALIZED = "finalized"


class DepletionTrigger(Base):
    """Recorded when an award empties the batch bound to a context.

    Resolved exactly once, either by binding a replacement batch or by
    closing the context.
    """

    __tablename__ = "depletion_triggers"
    __table_args__ = (
        CheckConstraint(
            "status IN ('open', 'reassigned', 'finalized')",
            name="ck_depletion_trigger_status",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    context_id = Column(String(36), ForeignKey("award_contexts.id"), nullable=False, index=True)
    batch_id = Column(String(36), ForeignKey("inventory_batches.id"), nullable=False)
    issuer = Column(String, nullable=False)
    status = Column(String, nullable=False, default=TriggerStatus.OPEN)
    replacement_batch_id = Column(String(36), ForeignKey("inventory_batches.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    context = relationship("AwardContext")
    batch = relationship("InventoryBatch", foreign_keys=[batch_id])
    replacement_batch = relationship("InventoryBatch", foreign_keys=[replacement_batch_id])
