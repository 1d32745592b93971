"""AwardRecord model - immutable receipt of one award."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class AwardRecord(Base):
    """Receipt that a token was transferred to a recipient.

    Written exactly once per successful award and never updated. The chain
    transaction reference is unique so a replayed commit finds the
    existing row instead of awarding twice.
    """

    __tablename__ = "awards"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    recipient = Column(String, nullable=False, index=True)
    issuer = Column(String, nullable=False, index=True)
    batch_id = Column(String(36), ForeignKey("inventory_batches.id"), nullable=False, index=True)
    context_id = Column(String(36), ForeignKey("award_contexts.id"), nullable=True, index=True)
    token_id = Column(String(36), ForeignKey("token_records.id"), nullable=False, unique=True)
    object_id = Column(String, nullable=False)
    transaction_reference = Column(String, nullable=False, unique=True)
    note = Column(String, nullable=True)
    awarded_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    batch = relationship("InventoryBatch")
    context = relationship("AwardContext")
    token = relationship("TokenRecord")
    holding = relationship("OwnershipHolding", back_populates="award", uselist=False)
