"""TokenRecord model - one on-chain object belonging to a batch."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class TokenStatus:
    AVAILABLE = "available"
    AWARDED = "awarded"


class TokenRecord(Base):
    """An individually addressable token in an inventory batch.

    Status only ever moves ``available -> awarded``. While an award attempt
    is in flight the token carries a lease (``lock_id``/``locked_at``); the
    lease is not a status and expires on its own if the caller goes away.
    """

    __tablename__ = "token_records"
    __table_args__ = (
        CheckConstraint("status IN ('available', 'awarded')", name="ck_token_record_status"),
        UniqueConstraint("batch_id", "position", name="uix_token_record_batch_position"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    batch_id = Column(String(36), ForeignKey("inventory_batches.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    object_id = Column(String, nullable=False, unique=True)
    status = Column(String, nullable=False, default=TokenStatus.AVAILABLE, index=True)
    minted_transaction_reference = Column(String, nullable=True)
    minted_at = Column(DateTime, nullable=True)
    award_transaction_reference = Column(String, nullable=True, unique=True)
    awarded_at = Column(DateTime, nullable=True)
    recipient = Column(String, nullable=True)

    # Transient lease held by an in-flight award attempt
    lock_id = Column(String(36), nullable=True)
    locked_at = Column(DateTime, nullable=True)

    # Relationships
    batch = relationship("InventoryBatch", back_populates="tokens")
