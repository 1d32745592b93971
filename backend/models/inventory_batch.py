"""InventoryBatch model - one purchase/mint of individually tracked tokens."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid


class ChainStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class InventoryBatch(Base):
    """A fixed-supply batch of mintable tokens acquired by one issuer.

    Identity fields (issuer, template, quantity, transaction reference) are
    written once at registration. Only ``awarded_count``, ``context_id`` and
    the statuses of the owned tokens change afterwards, and
    ``awarded_count`` always equals the number of awarded tokens.
    """

    __tablename__ = "inventory_batches"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_inventory_batch_quantity_positive"),
        CheckConstraint("awarded_count >= 0", name="ck_inventory_batch_awarded_non_negative"),
        CheckConstraint("awarded_count <= quantity", name="ck_inventory_batch_awarded_within_quantity"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    issuer = Column(String, nullable=False, index=True)
    template_ref = Column(String, nullable=True)  # None for custom-minted batches
    is_custom_minted = Column(Boolean, nullable=False, default=False)
    custom_name = Column(String, nullable=True)
    custom_description = Column(String, nullable=True)
    custom_image_url = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False)
    awarded_count = Column(Integer, nullable=False, default=0)
    context_id = Column(String(36), ForeignKey("award_contexts.id"), nullable=True, index=True)
    chain_status = Column(String, nullable=False, default=ChainStatus.CONFIRMED)
    transaction_reference = Column(String, nullable=True, unique=True)
    mint_cost = Column(Numeric(24, 9), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    context = relationship("AwardContext", back_populates="batches")
    tokens = relationship(
        "TokenRecord",
        back_populates="batch",
        order_by="TokenRecord.position",
        cascade="all, delete-orphan",
    )

    @property
    def available_count(self) -> int:
        return self.quantity - self.awarded_count
